from datetime import datetime, timezone
from flask import Blueprint, request, abort, g, current_app
from sqlalchemy import select, func, or_
from app import get_db
from app.constants.roles import GlobalRole, GroupRole, EffectiveRole, MEMBER_ROLES
from app.decorators.auth import authenticated, require_roles, require_group_access
from app.decorators.audit import audit_log
from app.errors import PermissionDenied, ResourceNotFound
from app.models.authz import User, Group, GroupMembership, JoinRequest
from app.models.notification import Notification
from app.models.table import PokerTable
from app.services.access import DenyReason
from app.services.audit import add_audit
from app.services.notifications import notify
from app.services.policy import current_identity, get_lookups
from app.utils.filters import parse_bool
from app.utils.listing import paginated
from app.utils.validation import require_fields, parse_enum

groups_bp = Blueprint('groups', __name__)


def group_json(grp: Group, user_role=None, table_count=None):
    body = {
        'id': grp.id,
        'name': grp.name,
        'description': grp.description,
        'owner_id': grp.owner_id,
        'is_active': grp.is_active,
        'created_at': grp.created_at.isoformat() if grp.created_at else None,
    }
    if user_role is not None:
        body['user_role'] = user_role
    if table_count is not None:
        body['table_count'] = table_count
    return body


def _table_count(group_id: int) -> int:
    return get_db().execute(select(func.count(PokerTable.id)).where(PokerTable.group_id == group_id)).scalar_one()


def _get_group(group_id: int) -> Group:
    grp = get_db().get(Group, group_id)
    if not grp:
        raise ResourceNotFound('group not found')
    return grp


def _owner_or_admin():
    return g.group_access.effective_role in (EffectiveRole.OWNER, EffectiveRole.ADMIN)


@groups_bp.get('/groups')
@authenticated
def list_groups():
    q = get_db().query(Group).order_by(Group.name.asc())
    return paginated(q, group_json)


@groups_bp.get('/my-groups')
@authenticated
def my_groups():
    identity = current_identity()
    session = get_db()
    memberships = {
        m.group_id: m.role
        for m in session.execute(select(GroupMembership).where(GroupMembership.user_id == identity.user_id)).scalars()
    }
    rows = session.execute(
        select(Group).where(or_(Group.owner_id == identity.user_id, Group.id.in_(list(memberships))))
        .order_by(Group.name.asc())
    ).scalars().all()
    data = []
    for grp in rows:
        role = GroupRole.OWNER.value if grp.owner_id == identity.user_id else memberships.get(grp.id)
        data.append(group_json(grp, user_role=role, table_count=_table_count(grp.id)))
    return {'data': data}


@groups_bp.post('/groups')
@authenticated
@require_roles(GlobalRole.ADMIN, GlobalRole.EDITOR)
@audit_log('GROUP.CREATE', entity='Group', entity_id_key='id', meta_keys=['name'])
def create_group():
    data = request.json or {}
    require_fields(data, 'name')
    session = get_db()
    if session.execute(select(Group).where(Group.name == data['name'])).scalar_one_or_none():
        abort(400, description='group exists')
    grp = Group(name=data['name'], description=data.get('description'), owner_id=current_identity().user_id,
                is_active=True)
    session.add(grp)
    session.commit()
    return group_json(grp, user_role=GroupRole.OWNER.value, table_count=0), 201


@groups_bp.get('/groups/<int:group_id>')
@authenticated
@require_group_access(GroupRole.VIEWER)
def get_group(group_id: int):
    grp = _get_group(group_id)
    return group_json(grp, user_role=g.group_access.effective_role.value, table_count=_table_count(group_id))


def _prefetch_group(group_id: int):
    grp = get_db().get(Group, group_id)
    if not grp:
        return {}
    return {'name': grp.name, 'description': grp.description, 'is_active': grp.is_active}


@groups_bp.put('/groups/<int:group_id>')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.UPDATE', entity='Group', entity_id_key='id', meta_keys=['name'],
           diff_keys=['name', 'description', 'is_active'],
           pre_fetch=lambda a, kw: _prefetch_group(kw.get('group_id')))
def update_group(group_id: int):
    session = get_db()
    grp = _get_group(group_id)
    data = request.json or {}
    if 'name' in data:
        if not data['name']:
            abort(400, description='name cannot be empty')
        dup = session.execute(select(Group).where(Group.name == data['name'], Group.id != grp.id)).scalar_one_or_none()
        if dup:
            abort(400, description='group name in use')
        grp.name = data['name']
    if 'description' in data:
        grp.description = data['description']
    if 'is_active' in data:
        try:
            grp.is_active = parse_bool(data['is_active'])
        except ValueError:
            abort(400, description='is_active invalid')
    session.commit()
    return group_json(grp)


@groups_bp.delete('/groups/<int:group_id>')
@authenticated
@require_group_access(GroupRole.OWNER)
def delete_group(group_id: int):
    session = get_db()
    grp = _get_group(group_id)
    if _table_count(group_id) > 0:
        abort(400, description='Cannot delete group that has tables assigned to it')
    name = grp.name
    session.delete(grp)
    add_audit('GROUP.DELETE', 'Group', group_id, {'name': name})
    session.commit()
    return {'message': 'Group deleted successfully'}


# --- Membership ---

def member_json(user: User, role: str):
    return {'user_id': user.id, 'username': user.username, 'email': user.email, 'role': role}


@groups_bp.get('/groups/<int:group_id>/members')
@authenticated
@require_group_access(GroupRole.VIEWER)
def list_members(group_id: int):
    session = get_db()
    grp = _get_group(group_id)
    rows = session.execute(
        select(GroupMembership, User).join(User, User.id == GroupMembership.user_id)
        .where(GroupMembership.group_id == group_id).order_by(User.username.asc())
    ).all()
    owner = session.get(User, grp.owner_id)
    data = [member_json(owner, GroupRole.OWNER.value)] if owner else []
    data.extend(member_json(user, m.role) for m, user in rows)
    return {'data': data}


@groups_bp.post('/groups/<int:group_id>/members')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.MEMBER.ADD', entity='Group', entity_id_arg='group_id', meta_keys=['user_id', 'role'])
def add_member(group_id: int):
    session = get_db()
    grp = _get_group(group_id)
    data = request.json or {}
    role = parse_enum(GroupRole, data.get('role', GroupRole.VIEWER.value), 'role', allowed=MEMBER_ROLES)
    user = None
    if data.get('user_id') is not None:
        user = session.get(User, data['user_id'])
    elif data.get('email'):
        user = session.execute(select(User).where(User.email == data['email'])).scalar_one_or_none()
    else:
        abort(400, description='user_id or email required')
    if not user:
        abort(404, description='User not found')
    if user.id == grp.owner_id:
        abort(400, description='the owner cannot be added as a member')
    if get_lookups().get_group_membership(group_id, user.id):
        abort(400, description='user is already a member')
    session.add(GroupMembership(group_id=group_id, user_id=user.id, role=role.value))
    notify(user.id, Notification.TYPE_MEMBERSHIP, f'Added to {grp.name}',
           f'You were added to {grp.name} as {role.value}', group_id=group_id)
    session.commit()
    return member_json(user, role.value), 201


def _get_membership(group_id: int, user_id: int) -> GroupMembership:
    m = get_db().execute(
        select(GroupMembership).where(GroupMembership.group_id == group_id, GroupMembership.user_id == user_id)
    ).scalar_one_or_none()
    if not m:
        raise ResourceNotFound('member not found')
    return m


@groups_bp.put('/groups/<int:group_id>/members/<int:user_id>')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.MEMBER.ROLE.SET', entity='Group', entity_id_arg='group_id', meta_keys=['user_id', 'role'])
def update_member(group_id: int, user_id: int):
    m = _get_membership(group_id, user_id)
    role = parse_enum(GroupRole, (request.json or {}).get('role'), 'role', allowed=MEMBER_ROLES)
    m.role = role.value
    get_db().commit()
    return member_json(m.user, m.role)


@groups_bp.delete('/groups/<int:group_id>/members/<int:user_id>')
@authenticated
@require_group_access(GroupRole.VIEWER)
@audit_log('GROUP.MEMBER.REMOVE', entity='Group', entity_id_arg='group_id', meta_keys=['user_id'])
def remove_member(group_id: int, user_id: int):
    # Members may leave on their own; removing someone else needs the owner.
    if user_id != current_identity().user_id and not _owner_or_admin():
        raise PermissionDenied('only the group owner may remove members', reason=DenyReason.INSUFFICIENT_ROLE.value)
    session = get_db()
    m = _get_membership(group_id, user_id)
    session.delete(m)
    session.commit()
    return {'message': 'Member removed', 'user_id': user_id}


@groups_bp.post('/groups/<int:group_id>/transfer-ownership')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.OWNER.TRANSFER', entity='Group', entity_id_key='id', meta_keys=['owner_id', 'previous_owner_id'])
def transfer_ownership(group_id: int):
    session = get_db()
    grp = _get_group(group_id)
    new_owner_id = (request.json or {}).get('user_id')
    if new_owner_id is None:
        abort(400, description='user_id required')
    new_owner = session.get(User, new_owner_id)
    if not new_owner:
        abort(404, description='User not found')
    if new_owner.id == grp.owner_id:
        abort(400, description='user already owns this group')
    previous_owner_id = grp.owner_id
    # Owner and membership stay mutually exclusive for both users.
    existing = session.execute(
        select(GroupMembership).where(GroupMembership.group_id == group_id, GroupMembership.user_id == new_owner.id)
    ).scalar_one_or_none()
    if existing:
        session.delete(existing)
    grp.owner_id = new_owner.id
    session.flush()
    session.add(GroupMembership(group_id=group_id, user_id=previous_owner_id, role=GroupRole.EDITOR.value))
    notify(new_owner.id, Notification.TYPE_MEMBERSHIP, f'You now own {grp.name}', group_id=group_id)
    session.commit()
    current_app.logger.info('group %s ownership moved from %s to %s', group_id, previous_owner_id, new_owner.id)
    body = group_json(grp)
    body['previous_owner_id'] = previous_owner_id
    return body


# --- Join requests ---

def join_request_json(jr: JoinRequest):
    return {
        'id': jr.id,
        'group_id': jr.group_id,
        'user_id': jr.user_id,
        'status': jr.status,
        'created_at': jr.created_at.isoformat() if jr.created_at else None,
        'decided_at': jr.decided_at.isoformat() if jr.decided_at else None,
    }


@groups_bp.post('/groups/<int:group_id>/join-request')
@authenticated
def request_join(group_id: int):
    identity = current_identity()
    session = get_db()
    grp = _get_group(group_id)
    if not grp.is_active:
        abort(400, description='group is not accepting members')
    if grp.owner_id == identity.user_id or get_lookups().get_group_membership(group_id, identity.user_id):
        abort(400, description='already a member of this group')
    pending = session.execute(select(JoinRequest).where(
        JoinRequest.group_id == group_id,
        JoinRequest.user_id == identity.user_id,
        JoinRequest.status == JoinRequest.STATUS_PENDING,
    )).scalar_one_or_none()
    if pending:
        abort(400, description='a join request is already pending')
    jr = JoinRequest(group_id=group_id, user_id=identity.user_id, status=JoinRequest.STATUS_PENDING)
    session.add(jr)
    session.flush()
    requester = session.get(User, identity.user_id)
    notify(grp.owner_id, Notification.TYPE_JOIN_REQUEST, f'Join request for {grp.name}',
           f'{requester.username} asked to join {grp.name}', group_id=group_id, request_id=jr.id)
    session.commit()
    return join_request_json(jr), 201


def _pending_request(group_id: int, request_id: int) -> JoinRequest:
    jr = get_db().get(JoinRequest, request_id)
    if not jr or jr.group_id != group_id:
        raise ResourceNotFound('join request not found')
    if jr.status != JoinRequest.STATUS_PENDING:
        abort(400, description=f'join request already {jr.status}')
    return jr


def _decide(jr: JoinRequest, status: str):
    jr.status = status
    jr.decided_at = datetime.now(timezone.utc)
    jr.decided_by = current_identity().user_id


@groups_bp.post('/groups/<int:group_id>/join-request/<int:request_id>/approve')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.JOIN.APPROVE', entity='Group', entity_id_key='group_id', meta_keys=['user_id'])
def approve_join(group_id: int, request_id: int):
    session = get_db()
    grp = _get_group(group_id)
    jr = _pending_request(group_id, request_id)
    _decide(jr, JoinRequest.STATUS_APPROVED)
    if jr.user_id != grp.owner_id and not get_lookups().get_group_membership(group_id, jr.user_id):
        session.add(GroupMembership(group_id=group_id, user_id=jr.user_id, role=GroupRole.VIEWER.value))
    notify(jr.user_id, Notification.TYPE_JOIN_APPROVED, f'Welcome to {grp.name}',
           'Your join request was approved', group_id=group_id, request_id=jr.id)
    session.commit()
    return join_request_json(jr)


@groups_bp.post('/groups/<int:group_id>/join-request/<int:request_id>/reject')
@authenticated
@require_group_access(GroupRole.OWNER)
@audit_log('GROUP.JOIN.REJECT', entity='Group', entity_id_key='group_id', meta_keys=['user_id'])
def reject_join(group_id: int, request_id: int):
    session = get_db()
    grp = _get_group(group_id)
    jr = _pending_request(group_id, request_id)
    _decide(jr, JoinRequest.STATUS_REJECTED)
    notify(jr.user_id, Notification.TYPE_JOIN_REJECTED, f'Request to join {grp.name} declined',
           group_id=group_id, request_id=jr.id)
    session.commit()
    return join_request_json(jr)


@groups_bp.get('/groups/<int:group_id>/join-request/<int:request_id>/status')
@authenticated
def join_request_status(group_id: int, request_id: int):
    identity = current_identity()
    jr = get_db().get(JoinRequest, request_id)
    if not jr or jr.group_id != group_id:
        raise ResourceNotFound('join request not found')
    if jr.user_id != identity.user_id:
        grp = _get_group(group_id)
        if grp.owner_id != identity.user_id and not identity.is_admin:
            raise PermissionDenied('not your join request', reason=DenyReason.NO_RELATION.value)
    return join_request_json(jr)
