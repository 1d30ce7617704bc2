from flask import Blueprint, request
from app import get_db
from app.constants.roles import GlobalRole
from app.decorators.auth import authenticated, require_roles
from app.models.audit import AuditLog
from app.utils.filters import apply_filters
from app.utils.listing import paginated

audit_bp = Blueprint('audit', __name__)


def audit_json(log: AuditLog):
    return {
        'id': log.id,
        'actor_user_id': log.actor_user_id,
        'actor_role': log.actor_role,
        'action': log.action,
        'entity': log.entity,
        'entity_id': log.entity_id,
        'meta': log.meta or {},
        'created_at': log.created_at.isoformat() if log.created_at else None,
    }


@audit_bp.get('/logs')
@authenticated
@require_roles(GlobalRole.ADMIN)
def list_logs():
    q = get_db().query(AuditLog)
    q = apply_filters(q, {
        'actor_user_id': {'column': AuditLog.actor_user_id, 'coerce': int},
        'action': {'column': AuditLog.action},
        'entity': {'column': AuditLog.entity},
        'entity_id': {'column': AuditLog.entity_id},
    }, request.args)
    return paginated(q.order_by(AuditLog.id.desc()), audit_json)
