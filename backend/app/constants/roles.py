"""Closed role and action vocabularies shared by the access resolver and the routes.

Stored values are the lowercase strings used on the wire and in the database.
Never rename a value silently; tokens and rows in the wild carry them.
"""
from __future__ import annotations
import enum
from typing import Dict, Optional, Union


class GlobalRole(str, enum.Enum):
    ADMIN = 'admin'
    EDITOR = 'editor'
    USER = 'user'

    @classmethod
    def coerce(cls, value: Union[str, 'GlobalRole', None]) -> 'GlobalRole':
        """Unknown or missing values fall back to the least privileged role."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.USER


class GroupRole(str, enum.Enum):
    OWNER = 'owner'
    EDITOR = 'editor'
    VIEWER = 'viewer'


# Roles a membership row may carry; ownership lives on Group.owner_id only.
MEMBER_ROLES = (GroupRole.EDITOR, GroupRole.VIEWER)


class EffectiveRole(str, enum.Enum):
    ADMIN = 'admin'
    OWNER = 'owner'
    EDITOR = 'editor'
    VIEWER = 'viewer'
    NONE = 'none'


class TableAction(str, enum.Enum):
    VIEW = 'view'
    EDIT = 'edit'
    DELETE = 'delete'
    CHANGE_STATUS = 'change-status'
    ADD_PLAYER = 'add-player'
    REMOVE_PLAYER = 'remove-player'
    UPDATE_PLAYER = 'update-player'
    ADD_BUYIN = 'add-buyin'
    DELETE_BUYIN = 'delete-buyin'
    ADD_CASHOUT = 'add-cashout'
    REACTIVATE_PLAYER = 'reactivate-player'


# Actions only the creator may perform once a table is inactive.
CREATOR_GATED_WHEN_INACTIVE = frozenset({TableAction.EDIT, TableAction.CHANGE_STATUS})

# Actions that touch the player ledger and need an active table.
LEDGER_ACTIONS = frozenset({
    TableAction.ADD_PLAYER,
    TableAction.REMOVE_PLAYER,
    TableAction.UPDATE_PLAYER,
    TableAction.ADD_BUYIN,
    TableAction.DELETE_BUYIN,
    TableAction.ADD_CASHOUT,
    TableAction.REACTIVATE_PLAYER,
})

ROLE_LEVELS: Dict[str, int] = {
    GroupRole.OWNER.value: 3,
    GroupRole.EDITOR.value: 2,
    GroupRole.VIEWER.value: 1,
}


def role_level(role: Optional[Union[str, enum.Enum]]) -> int:
    """Hierarchy level of a group-scoped role; anything unknown (including none) is 0."""
    if isinstance(role, enum.Enum):
        role = role.value
    return ROLE_LEVELS.get(role, 0) if isinstance(role, str) else 0


def meets_role(actual, required) -> bool:
    return role_level(actual) >= role_level(required)


__all__ = [
    'GlobalRole', 'GroupRole', 'EffectiveRole', 'TableAction', 'MEMBER_ROLES',
    'CREATOR_GATED_WHEN_INACTIVE', 'LEDGER_ACTIONS', 'ROLE_LEVELS', 'role_level', 'meets_role',
]
