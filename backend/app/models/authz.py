from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import declarative_base, relationship, Mapped, mapped_column
from sqlalchemy import String, Integer, Boolean, ForeignKey, UniqueConstraint, CheckConstraint, DateTime, Text, text, func

Base = declarative_base()

# --- Identity & group ownership ---
class User(Base):
    __tablename__ = 'users'
    ROLE_ADMIN = 'admin'
    ROLE_EDITOR = 'editor'
    ROLE_USER = 'user'
    ALL_ROLES = (ROLE_ADMIN, ROLE_EDITOR, ROLE_USER)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    username: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(128), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=ROLE_USER, server_default=ROLE_USER)
    is_blocked: Mapped[bool] = mapped_column(Boolean, default=False, server_default=text('0'), nullable=False)
    is_verified: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text('1'), nullable=False)
    verification_token: Mapped[Optional[str]] = mapped_column(String(128), index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owned_groups = relationship('Group', back_populates='owner')
    memberships = relationship('GroupMembership', back_populates='user', cascade='all, delete-orphan')

    __table_args__ = (CheckConstraint("role IN ('admin','editor','user')", name='ck_users_role'),)

    def set_password(self, raw: str):
        from werkzeug.security import generate_password_hash
        self.password_hash = generate_password_hash(raw)

    def verify_password(self, raw: str) -> bool:
        from werkzeug.security import check_password_hash
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, raw)


class Group(Base):
    __tablename__ = 'groups'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    # Exactly one owner; ownership moves via transfer, never cleared.
    owner_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, server_default=text('1'), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    owner = relationship('User', back_populates='owned_groups')
    memberships = relationship('GroupMembership', back_populates='group', cascade='all, delete-orphan')
    join_requests = relationship('JoinRequest', back_populates='group', cascade='all, delete-orphan')


class GroupMembership(Base):
    __tablename__ = 'group_memberships'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey('groups.id', ondelete='CASCADE'), nullable=False)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(16), nullable=False, default='viewer')
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    group = relationship('Group', back_populates='memberships')
    user = relationship('User', back_populates='memberships')

    __table_args__ = (
        UniqueConstraint('group_id', 'user_id', name='uq_group_membership'),
        CheckConstraint("role IN ('editor','viewer')", name='ck_group_memberships_role'),
    )


class JoinRequest(Base):
    __tablename__ = 'group_join_requests'
    STATUS_PENDING = 'pending'
    STATUS_APPROVED = 'approved'
    STATUS_REJECTED = 'rejected'
    ALL_STATUSES = (STATUS_PENDING, STATUS_APPROVED, STATUS_REJECTED)

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    group_id: Mapped[int] = mapped_column(ForeignKey('groups.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_PENDING)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    decided_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    decided_by: Mapped[Optional[int]] = mapped_column(Integer)

    group = relationship('Group', back_populates='join_requests')
    user = relationship('User')

__all__ = ['Base', 'User', 'Group', 'GroupMembership', 'JoinRequest']
