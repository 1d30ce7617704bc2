from flask import Blueprint
from sqlalchemy import select, func
from app import get_db
from app.decorators.auth import authenticated
from app.errors import ResourceNotFound
from app.models.notification import Notification
from app.services.notifications import notification_json
from app.services.policy import current_identity

notifications_bp = Blueprint('notifications', __name__)


@notifications_bp.get('/notifications')
@authenticated
def list_notifications():
    user_id = current_identity().user_id
    session = get_db()
    rows = session.execute(
        select(Notification).where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
    ).scalars().all()
    unread = session.execute(
        select(func.count(Notification.id)).where(Notification.user_id == user_id, Notification.is_read.is_(False))
    ).scalar_one()
    return {'data': [notification_json(n) for n in rows], 'unread_count': unread}


@notifications_bp.put('/notifications/<int:notification_id>/read')
@authenticated
def mark_read(notification_id: int):
    note = get_db().get(Notification, notification_id)
    # Someone else's notification is reported as missing.
    if not note or note.user_id != current_identity().user_id:
        raise ResourceNotFound('notification not found')
    note.is_read = True
    get_db().commit()
    return notification_json(note)
