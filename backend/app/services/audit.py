from __future__ import annotations
from typing import Any, Dict, Optional
from flask import g, has_app_context
from app import get_db
from app.models.audit import AuditLog


def add_audit(action: str, entity: Optional[str] = None, entity_id: Optional[Any] = None, meta: Optional[Dict[str, Any]] = None):
    """Stage an audit row in the current DB session.

    Parameters:
      action: short action code e.g. USER.ROLE.SET, GROUP.MEMBER.ADD, TABLE.STATUS.SET
      entity: optional entity label (User, Group, Table)
      entity_id: optional primary key (stored as string)
      meta: additional JSON-safe dictionary (shallow copied)

    The actor comes from the identity resolved for this request; outside a request
    (scripts, seeding) it is recorded as 0.
    """
    identity = g.get('identity') if has_app_context() else None
    log = AuditLog(
        actor_user_id=identity.user_id if identity else 0,
        actor_role=identity.global_role.value if identity else None,
        action=action,
        entity=entity,
        entity_id=str(entity_id) if entity_id is not None else None,
        meta=dict(meta or {}),
    )
    get_db().add(log)
    # No commit here; caller's transaction boundary controls durability.
    return log
