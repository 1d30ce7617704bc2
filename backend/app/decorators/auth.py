"""Route decorators implementing the authorization middleware chain.

Order matters: identity first, then the coarse global role gate, then group access,
then the table action check (which reuses the group access attached to ``g``).
Stack them top-down in that order on a view.
"""
from functools import wraps
from typing import Optional
from flask import g
from app.constants.roles import GlobalRole, GroupRole, TableAction, LEDGER_ACTIONS
from app.services.policy import (
    current_identity, require_global_role, authorize_group, authorize_table,
    load_table_context, attach_table_group_access, assert_table_active,
)


def authenticated(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        current_identity()
        return fn(*args, **kwargs)
    return wrapper


def require_roles(*roles: GlobalRole):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            require_global_role(*roles)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_group_access(required_role: GroupRole = GroupRole.VIEWER, arg: str = 'group_id'):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            authorize_group(kwargs[arg], required_role)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def resolve_table_group(arg: str = 'table_id'):
    """Load the table and attach the caller's group access before permission checks."""
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            ctx = load_table_context(kwargs[arg])
            attach_table_group_access(ctx)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def require_table_permission(action: TableAction, arg: str = 'table_id', require_active: Optional[bool] = None):
    """Ledger actions require an active table unless ``require_active`` says otherwise."""
    if require_active is None:
        require_active = action in LEDGER_ACTIONS

    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            authorize_table(kwargs[arg], action)
            if require_active:
                assert_table_active(g.table_context)
            return fn(*args, **kwargs)
        return wrapper
    return outer


def table_route(action: TableAction, *, roles=None, arg: str = 'table_id', require_active: Optional[bool] = None):
    """Full chain for a table-scoped view: global roles -> group access -> table action."""
    def outer(fn):
        guarded = require_table_permission(action, arg=arg, require_active=require_active)(fn)
        guarded = resolve_table_group(arg=arg)(guarded)
        if roles:
            guarded = require_roles(*roles)(guarded)
        return authenticated(guarded)
    return outer

__all__ = [
    'authenticated', 'require_roles', 'require_group_access', 'resolve_table_group',
    'require_table_permission', 'table_route',
]
