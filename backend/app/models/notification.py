from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Boolean, ForeignKey, DateTime, Text, text, func
from .authz import Base


class Notification(Base):
    __tablename__ = 'notifications'
    TYPE_JOIN_REQUEST = 'join_request'
    TYPE_JOIN_APPROVED = 'join_approved'
    TYPE_JOIN_REJECTED = 'join_rejected'
    TYPE_MEMBERSHIP = 'membership'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False, default='')
    group_id: Mapped[Optional[int]] = mapped_column(Integer, index=True)
    request_id: Mapped[Optional[int]] = mapped_column(Integer)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text('0'))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

__all__ = ['Notification']
