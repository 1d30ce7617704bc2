"""Access resolver for groups and poker tables.

Pure decision functions over an injected, read-only lookup collaborator. Each call
reads fresh data through the collaborator and keeps no state between calls; the
Flask glue lives in app.services.policy.

Resolution order for a group:
  1. global admin -> allow (admin)
  2. missing group -> not found
  3. group owner -> allow (owner)
  4. no membership row -> forbidden (no relation)
  5. membership role, capped at viewer unless the global role is editor,
     compared against the required role

Resolution order for a table action:
  1. global admin -> allow
  2. missing table -> not found
  3. ungrouped table: global editor passes the creator gate, global user may only view
  4. grouped table: group access (viewer) must allow, then
     owner -> allow, editor -> creator gate, viewer -> view only

Creator gate: delete needs the creator; edit and change-status on an inactive
table need the creator.
"""
from __future__ import annotations
import enum
import logging
from dataclasses import dataclass
from typing import Optional, Protocol, Union

from app.constants.roles import (
    GlobalRole, GroupRole, EffectiveRole, TableAction, MEMBER_ROLES,
    CREATOR_GATED_WHEN_INACTIVE, meets_role,
)

logger = logging.getLogger(__name__)


class AccessLookupError(Exception):
    """A lookup collaborator could not answer (storage failure). Never a denial."""


class DenyKind(str, enum.Enum):
    NOT_FOUND = 'not_found'
    FORBIDDEN = 'forbidden'


class DenyReason(str, enum.Enum):
    NOT_FOUND = 'not_found'
    NO_RELATION = 'no_relation'
    INSUFFICIENT_ROLE = 'insufficient_role'
    NO_GROUP_ACCESS = 'no_group_access'
    NOT_CREATOR = 'not_creator'
    TABLE_INACTIVE = 'table_inactive'
    VIEW_ONLY = 'view_only'


@dataclass(frozen=True)
class UserRecord:
    id: int
    global_role: GlobalRole
    is_blocked: bool


@dataclass(frozen=True)
class GroupRecord:
    id: int
    owner_id: int
    is_active: bool


@dataclass(frozen=True)
class MembershipRecord:
    group_id: int
    user_id: int
    role: str


@dataclass(frozen=True)
class TableContext:
    id: int
    creator_id: int
    group_id: Optional[int]
    is_active: bool


class AccessLookups(Protocol):
    def get_user(self, user_id: int) -> Optional[UserRecord]: ...

    def get_group(self, group_id: int) -> Optional[GroupRecord]: ...

    def get_group_membership(self, group_id: int, user_id: int) -> Optional[MembershipRecord]: ...

    def get_table_context(self, table_id: int) -> Optional[TableContext]: ...


@dataclass(frozen=True)
class AccessDecision:
    allowed: bool
    effective_role: EffectiveRole = EffectiveRole.NONE
    kind: Optional[DenyKind] = None
    reason: Optional[DenyReason] = None
    message: Optional[str] = None

    @classmethod
    def allow(cls, role: EffectiveRole) -> 'AccessDecision':
        return cls(allowed=True, effective_role=role)

    @classmethod
    def deny(cls, kind: DenyKind, reason: DenyReason, message: str) -> 'AccessDecision':
        return cls(allowed=False, kind=kind, reason=reason, message=message)

    def __bool__(self) -> bool:
        return self.allowed


def _capped_membership_role(global_role: GlobalRole, stored: str) -> GroupRole:
    # Global editors are trusted at their membership level; everyone else tops out at viewer.
    try:
        role = GroupRole(stored)
    except ValueError:
        role = None
    if role not in MEMBER_ROLES:
        logger.warning('membership row claims role %r; treating as viewer', stored)
        role = GroupRole.VIEWER
    if global_role is not GlobalRole.EDITOR:
        return GroupRole.VIEWER
    return role


def resolve_group_access(
    lookups: AccessLookups,
    user_id: int,
    global_role: Union[GlobalRole, str],
    group_id: int,
    required_role: Union[GroupRole, str] = GroupRole.VIEWER,
) -> AccessDecision:
    global_role = GlobalRole.coerce(global_role)
    if global_role is GlobalRole.ADMIN:
        return AccessDecision.allow(EffectiveRole.ADMIN)

    group = lookups.get_group(group_id)
    if group is None:
        return AccessDecision.deny(DenyKind.NOT_FOUND, DenyReason.NOT_FOUND, 'group not found')

    if group.owner_id == user_id:
        return AccessDecision.allow(EffectiveRole.OWNER)

    membership = lookups.get_group_membership(group_id, user_id)
    if membership is None:
        logger.debug('user %s has no relation to group %s', user_id, group_id)
        return AccessDecision.deny(DenyKind.FORBIDDEN, DenyReason.NO_RELATION, 'no relation to group')

    role = _capped_membership_role(global_role, membership.role)
    if not meets_role(role, required_role):
        logger.debug('user %s role %s below %s in group %s', user_id, role.value, required_role, group_id)
        return AccessDecision.deny(DenyKind.FORBIDDEN, DenyReason.INSUFFICIENT_ROLE, 'insufficient group role')
    return AccessDecision.allow(EffectiveRole(role.value))


def _creator_gate(table: TableContext, user_id: int, action: TableAction, role: EffectiveRole) -> AccessDecision:
    if table.creator_id == user_id:
        return AccessDecision.allow(role)
    if action is TableAction.DELETE:
        return AccessDecision.deny(DenyKind.FORBIDDEN, DenyReason.NOT_CREATOR, 'can only delete tables you created')
    if action in CREATOR_GATED_WHEN_INACTIVE and not table.is_active:
        verb = 'edit' if action is TableAction.EDIT else 'change the status of'
        return AccessDecision.deny(
            DenyKind.FORBIDDEN, DenyReason.NOT_CREATOR,
            f'only the creator may {verb} an inactive table',
        )
    return AccessDecision.allow(role)


def _view_only(action: TableAction, message: str) -> AccessDecision:
    if action is TableAction.VIEW:
        return AccessDecision.allow(EffectiveRole.VIEWER)
    return AccessDecision.deny(DenyKind.FORBIDDEN, DenyReason.VIEW_ONLY, message)


def resolve_table_action(
    lookups: AccessLookups,
    user_id: int,
    global_role: Union[GlobalRole, str],
    table_id: int,
    action: Union[TableAction, str],
    *,
    table: Optional[TableContext] = None,
    group_access: Optional[AccessDecision] = None,
) -> AccessDecision:
    """Decide whether ``user_id`` may perform ``action`` on a table.

    ``table`` and ``group_access`` let a caller hand over context it has already
    resolved for this request (the middleware chain resolves group access first);
    when omitted they are looked up here.
    """
    global_role = GlobalRole.coerce(global_role)
    action = TableAction(action)
    if global_role is GlobalRole.ADMIN:
        return AccessDecision.allow(EffectiveRole.ADMIN)

    if table is None:
        table = lookups.get_table_context(table_id)
    if table is None:
        return AccessDecision.deny(DenyKind.NOT_FOUND, DenyReason.NOT_FOUND, 'table not found')

    if table.group_id is None:
        if global_role is GlobalRole.EDITOR:
            return _creator_gate(table, user_id, action, EffectiveRole.EDITOR)
        return _view_only(action, 'users can only view tables')

    if group_access is None:
        group_access = resolve_group_access(lookups, user_id, global_role, table.group_id, GroupRole.VIEWER)
    if not group_access.allowed:
        return AccessDecision.deny(DenyKind.FORBIDDEN, DenyReason.NO_GROUP_ACCESS, 'no access to this group')

    role = group_access.effective_role
    if role in (EffectiveRole.OWNER, EffectiveRole.ADMIN):
        return AccessDecision.allow(role)
    if role is EffectiveRole.EDITOR:
        return _creator_gate(table, user_id, action, role)
    return _view_only(action, 'members can only view')


__all__ = [
    'AccessLookupError', 'DenyKind', 'DenyReason', 'UserRecord', 'GroupRecord', 'MembershipRecord',
    'TableContext', 'AccessLookups', 'AccessDecision', 'resolve_group_access', 'resolve_table_action',
]
