from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from app import get_db
from app.constants.roles import GlobalRole
from app.decorators.auth import authenticated, require_roles
from app.decorators.audit import audit_log
from app.models.authz import User, Group
from app.models.table import PokerTable
from app.routes.auth import user_json, check_login_names_free
from app.services.policy import current_identity
from app.utils.filters import apply_filters, parse_bool
from app.utils.listing import paginated
from app.utils.validation import require_fields, parse_enum

users_bp = Blueprint('users', __name__)


def _get_user_or_404(user_id: int) -> User:
    user = get_db().get(User, user_id)
    if not user:
        abort(404, description='User not found')
    return user


@users_bp.get('/users')
@authenticated
@require_roles(GlobalRole.ADMIN)
def list_users():
    session = get_db()
    q = session.query(User)
    q = apply_filters(q, {
        'role': {'column': User.role, 'coerce': lambda v: GlobalRole(v).value},
        'is_blocked': {'column': User.is_blocked, 'coerce': parse_bool},
    }, request.args)
    return paginated(q.order_by(User.id.asc()), user_json)


@users_bp.post('/users')
@authenticated
@require_roles(GlobalRole.ADMIN)
@audit_log('USER.CREATE', entity='User', entity_id_key='id', meta_keys=['username', 'role'])
def create_user():
    data = request.json or {}
    require_fields(data, 'username', 'password', 'role')
    role = parse_enum(GlobalRole, data['role'], 'role')
    if len(data['password']) < current_app.config['MIN_PASSWORD_LENGTH']:
        abort(400, description='password too short')
    email = data.get('email') or None
    check_login_names_free(data['username'], email)
    session = get_db()
    user = User(username=data['username'], email=email, role=role.value, is_verified=True)
    user.set_password(data['password'])
    session.add(user)
    session.commit()
    return user_json(user), 201


@users_bp.get('/users/by-email/<path:email>')
@authenticated
def get_user_by_email(email: str):
    user = get_db().execute(select(User).where(User.email == email)).scalar_one_or_none()
    if not user:
        abort(404, description='User not found')
    return {'id': user.id, 'username': user.username, 'email': user.email}


def _prefetch_user(user_id: int):
    user = get_db().get(User, user_id)
    if not user:
        return {}
    return {'role': user.role, 'is_blocked': user.is_blocked}


@users_bp.put('/users/<int:user_id>/role')
@authenticated
@require_roles(GlobalRole.ADMIN)
@audit_log('USER.ROLE.SET', entity='User', entity_id_key='id', diff_keys=['role'],
           pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def set_user_role(user_id: int):
    user = _get_user_or_404(user_id)
    data = request.json or {}
    role = parse_enum(GlobalRole, data.get('role'), 'role')
    if user.id == current_identity().user_id and role is not GlobalRole.ADMIN:
        abort(400, description='cannot demote yourself')
    user.role = role.value
    get_db().commit()
    current_app.logger.info('user %s role set to %s', user.id, role.value)
    return user_json(user)


@users_bp.put('/users/<int:user_id>/blocked')
@authenticated
@require_roles(GlobalRole.ADMIN)
@audit_log('USER.BLOCKED.SET', entity='User', entity_id_key='id', diff_keys=['is_blocked'],
           pre_fetch=lambda a, kw: _prefetch_user(kw.get('user_id')))
def set_user_blocked(user_id: int):
    user = _get_user_or_404(user_id)
    data = request.json or {}
    if 'is_blocked' not in data:
        abort(400, description='is_blocked required')
    try:
        blocked = parse_bool(data['is_blocked'])
    except ValueError:
        abort(400, description='is_blocked invalid')
    if user.id == current_identity().user_id and blocked:
        abort(400, description='cannot block yourself')
    user.is_blocked = blocked
    get_db().commit()
    current_app.logger.info('user %s blocked=%s', user.id, blocked)
    return user_json(user)


@users_bp.put('/users/<int:user_id>/password')
@authenticated
@require_roles(GlobalRole.ADMIN)
def reset_user_password(user_id: int):
    user = _get_user_or_404(user_id)
    password = (request.json or {}).get('password')
    if not password or len(password) < current_app.config['MIN_PASSWORD_LENGTH']:
        abort(400, description='Password is required and must be at least '
                               f"{current_app.config['MIN_PASSWORD_LENGTH']} characters")
    user.set_password(password)
    get_db().commit()
    return {'message': 'Password updated successfully'}


@users_bp.delete('/users/<int:user_id>')
@authenticated
@require_roles(GlobalRole.ADMIN)
@audit_log('USER.DELETE', entity='User', entity_id_arg='user_id', meta_keys=['username'])
def delete_user(user_id: int):
    session = get_db()
    user = _get_user_or_404(user_id)
    if user.id == current_identity().user_id:
        abort(400, description='cannot delete yourself')
    if session.execute(select(Group.id).where(Group.owner_id == user.id)).first():
        abort(400, description='transfer group ownership before deleting this user')
    if session.execute(select(PokerTable.id).where(PokerTable.creator_id == user.id)).first():
        abort(400, description='user still has tables; delete or reassign them first')
    username = user.username
    session.delete(user)
    session.commit()
    return {'message': 'User deleted successfully', 'username': username}
