from __future__ import annotations
from typing import Optional
from app import get_db
from app.models.notification import Notification


def notify(user_id: int, type_: str, title: str, message: str = '', group_id: Optional[int] = None,
           request_id: Optional[int] = None) -> Notification:
    """Stage an in-app notification for ``user_id``; the caller commits."""
    note = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        group_id=group_id,
        request_id=request_id,
    )
    get_db().add(note)
    return note


def notification_json(n: Notification):
    return {
        'id': n.id,
        'type': n.type,
        'title': n.title,
        'message': n.message,
        'group_id': n.group_id,
        'request_id': n.request_id,
        'is_read': n.is_read,
        'created_at': n.created_at.isoformat() if n.created_at else None,
    }
