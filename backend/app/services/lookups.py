"""SQLAlchemy implementation of the access resolver's lookup collaborator.

Each lookup is a column-level point read, so results never come from ORM objects
cached in the session identity map. Storage failures surface as AccessLookupError.
"""
from __future__ import annotations
from typing import Optional
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.constants.roles import GlobalRole
from app.models.authz import User, Group, GroupMembership
from app.models.table import PokerTable
from app.services.access import (
    AccessLookupError, UserRecord, GroupRecord, MembershipRecord, TableContext,
)


class SqlAccessLookups:
    def __init__(self, session: Session):
        self.session = session

    def _one(self, stmt, what: str):
        try:
            return self.session.execute(stmt).one_or_none()
        except SQLAlchemyError as e:
            raise AccessLookupError(f'{what} lookup failed') from e

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        row = self._one(select(User.id, User.role, User.is_blocked).where(User.id == user_id), 'user')
        if row is None:
            return None
        return UserRecord(id=row.id, global_role=GlobalRole.coerce(row.role), is_blocked=bool(row.is_blocked))

    def get_group(self, group_id: int) -> Optional[GroupRecord]:
        row = self._one(select(Group.id, Group.owner_id, Group.is_active).where(Group.id == group_id), 'group')
        if row is None:
            return None
        return GroupRecord(id=row.id, owner_id=row.owner_id, is_active=bool(row.is_active))

    def get_group_membership(self, group_id: int, user_id: int) -> Optional[MembershipRecord]:
        stmt = select(GroupMembership.group_id, GroupMembership.user_id, GroupMembership.role).where(
            GroupMembership.group_id == group_id, GroupMembership.user_id == user_id
        )
        row = self._one(stmt, 'membership')
        if row is None:
            return None
        return MembershipRecord(group_id=row.group_id, user_id=row.user_id, role=row.role)

    def get_table_context(self, table_id: int) -> Optional[TableContext]:
        stmt = select(PokerTable.id, PokerTable.creator_id, PokerTable.group_id, PokerTable.is_active).where(
            PokerTable.id == table_id
        )
        row = self._one(stmt, 'table')
        if row is None:
            return None
        return TableContext(id=row.id, creator_id=row.creator_id, group_id=row.group_id, is_active=bool(row.is_active))

__all__ = ['SqlAccessLookups']
