"""Request-bound glue between Flask/JWT and the pure access resolver.

Chain per request: identity (token + fresh user row, blocked check) -> global role
allow-list -> group access (attached to ``g``) -> table action permission.
Results are stashed on ``flask.g`` so later steps in the same request reuse them.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import List, Optional
from flask import g, current_app
from flask_jwt_extended import verify_jwt_in_request, get_jwt_identity
from sqlalchemy import select, or_

from app import get_db
from app.constants.roles import GlobalRole, GroupRole, TableAction
from app.errors import Unauthenticated, AccountBlocked, ResourceNotFound, PermissionDenied
from app.models.authz import Group, GroupMembership
from app.services.access import (
    AccessDecision, DenyKind, DenyReason, TableContext, resolve_group_access, resolve_table_action,
)
from app.services.lookups import SqlAccessLookups


@dataclass(frozen=True)
class Identity:
    user_id: int
    global_role: GlobalRole

    @property
    def is_admin(self) -> bool:
        return self.global_role is GlobalRole.ADMIN


def get_lookups() -> SqlAccessLookups:
    lookups = g.get('access_lookups')
    if lookups is None:
        lookups = g.access_lookups = SqlAccessLookups(get_db())
    return lookups


def current_identity() -> Identity:
    """Authenticate the caller; blocked accounts are rejected before any role logic."""
    cached = g.get('identity')
    if cached is not None:
        return cached
    verify_jwt_in_request()
    raw = get_jwt_identity()
    try:
        user_id = int(raw)
    except (TypeError, ValueError):
        raise Unauthenticated('Invalid token identity')
    user = get_lookups().get_user(user_id)
    if user is None:
        raise Unauthenticated('User no longer exists')
    if user.is_blocked:
        current_app.logger.info('blocked user %s rejected', user_id)
        raise AccountBlocked()
    identity = g.identity = Identity(user_id=user.id, global_role=user.global_role)
    return identity


def require_global_role(*roles: GlobalRole) -> Identity:
    identity = current_identity()
    if identity.global_role not in roles:
        current_app.logger.info('user %s with role %s denied (needs one of %s)',
                                identity.user_id, identity.global_role.value, [r.value for r in roles])
        raise PermissionDenied(reason=DenyReason.INSUFFICIENT_ROLE.value)
    return identity


def enforce(decision: AccessDecision, resource: str, resource_id) -> AccessDecision:
    if decision.allowed:
        return decision
    identity = g.get('identity')
    current_app.logger.info('access denied: user=%s %s=%s reason=%s',
                            identity.user_id if identity else None, resource, resource_id,
                            decision.reason.value if decision.reason else None)
    if decision.kind is DenyKind.NOT_FOUND:
        raise ResourceNotFound(decision.message)
    raise PermissionDenied(decision.message, reason=decision.reason.value if decision.reason else None)


def authorize_group(group_id: int, required_role: GroupRole = GroupRole.VIEWER) -> AccessDecision:
    identity = current_identity()
    decision = resolve_group_access(get_lookups(), identity.user_id, identity.global_role, group_id, required_role)
    enforce(decision, 'group', group_id)
    g.group_access = decision
    g.group_access_id = group_id
    return decision


def load_table_context(table_id: int) -> TableContext:
    ctx = g.get('table_context')
    if ctx is not None and ctx.id == table_id:
        return ctx
    ctx = get_lookups().get_table_context(table_id)
    if ctx is None:
        raise ResourceNotFound('table not found')
    g.table_context = ctx
    return ctx


def attach_table_group_access(ctx: TableContext) -> Optional[AccessDecision]:
    """Resolve (without enforcing) the caller's relation to the table's group."""
    identity = current_identity()
    if ctx.group_id is None or identity.is_admin:
        return None
    if g.get('group_access') is not None and g.get('group_access_id') == ctx.group_id:
        return g.group_access
    decision = resolve_group_access(get_lookups(), identity.user_id, identity.global_role, ctx.group_id,
                                    GroupRole.VIEWER)
    g.group_access = decision
    g.group_access_id = ctx.group_id
    return decision


def authorize_table(table_id: int, action: TableAction) -> AccessDecision:
    identity = current_identity()
    ctx = load_table_context(table_id)
    group_access = attach_table_group_access(ctx)
    decision = resolve_table_action(get_lookups(), identity.user_id, identity.global_role, table_id, action,
                                    table=ctx, group_access=group_access)
    enforce(decision, 'table', table_id)
    g.table_access = decision
    return decision


def assert_table_active(ctx: TableContext):
    if not ctx.is_active:
        raise PermissionDenied('This action is not allowed while the table is inactive.',
                               reason=DenyReason.TABLE_INACTIVE.value)


def related_group_ids(user_id: int) -> List[int]:
    """Ids of groups the user owns or holds a membership in (unique, sorted)."""
    session = get_db()
    owned = session.execute(select(Group.id).where(Group.owner_id == user_id)).scalars().all()
    member = session.execute(select(GroupMembership.group_id).where(GroupMembership.user_id == user_id)).scalars().all()
    return sorted(set(owned) | set(member))


def visible_tables_clause(identity: Identity, table_model):
    """SQL filter for tables the caller may view; None means unrestricted."""
    if identity.is_admin:
        return None
    group_ids = related_group_ids(identity.user_id)
    if group_ids:
        return or_(table_model.group_id.is_(None), table_model.group_id.in_(group_ids))
    return table_model.group_id.is_(None)
