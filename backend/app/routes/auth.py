import secrets
from flask import Blueprint, request, abort, current_app
from flask_jwt_extended import create_access_token
from sqlalchemy import select
from app import get_db
from app.constants.roles import GlobalRole
from app.decorators.auth import authenticated
from app.errors import AccountBlocked, EmailNotVerified
from app.models.authz import User
from app.services.policy import current_identity
from app.utils.validation import require_fields

auth_bp = Blueprint('auth', __name__)


def user_json(u: User):
    return {
        'id': u.id,
        'username': u.username,
        'email': u.email,
        'role': u.role,
        'is_blocked': u.is_blocked,
        'is_verified': u.is_verified,
        'created_at': u.created_at.isoformat() if u.created_at else None,
    }


def _user_by(column, value):
    return get_db().execute(select(User).where(column == value)).scalars().first()


def find_login_user(login_name: str):
    """Username wins over email when the same string names two accounts."""
    return _user_by(User.username, login_name) or _user_by(User.email, login_name)


def check_login_names_free(username: str, email=None):
    """A login name must not match any existing username or email."""
    if _user_by(User.username, username) or _user_by(User.email, username):
        abort(400, description='Username already exists')
    if email and (_user_by(User.email, email) or _user_by(User.username, email)):
        abort(400, description='Email already exists')


@auth_bp.post('/login')
def login():
    data = request.json or {}
    login_name = data.get('username') or data.get('email')
    password = data.get('password')
    if not login_name or not password:
        abort(400, description='username & password required')
    user = find_login_user(login_name)
    if not user or not user.verify_password(password):
        current_app.logger.info('failed login for %r', login_name)
        abort(401, description='invalid credentials')
    if user.is_blocked:
        current_app.logger.info('blocked user %s attempted login', user.id)
        raise AccountBlocked()
    if not user.is_verified:
        raise EmailNotVerified()
    # JWT identity must be a string (flask-jwt-extended v4 requirement)
    token = create_access_token(identity=str(user.id), additional_claims={'role': user.role, 'username': user.username})
    return {'access_token': token, 'user': user_json(user)}


@auth_bp.post('/register')
def register():
    data = request.json or {}
    require_fields(data, 'username', 'email', 'password')
    if len(data['password']) < current_app.config['MIN_PASSWORD_LENGTH']:
        abort(400, description='password too short')
    check_login_names_free(data['username'], data['email'])
    session = get_db()
    user = User(
        username=data['username'],
        email=data['email'],
        role=GlobalRole.USER.value,
        is_verified=False,
        verification_token=secrets.token_urlsafe(32),
    )
    user.set_password(data['password'])
    session.add(user)
    session.commit()
    # Mail delivery happens outside this service; the token is handed off via the log.
    current_app.logger.info('verification token issued for user %s: %s', user.id, user.verification_token)
    return user_json(user), 201


@auth_bp.post('/verify-email')
def verify_email():
    data = request.json or {}
    require_fields(data, 'token')
    session = get_db()
    user = session.execute(select(User).where(User.verification_token == data['token'])).scalar_one_or_none()
    if not user:
        abort(400, description='invalid or used verification token')
    user.is_verified = True
    user.verification_token = None
    if user.role == GlobalRole.USER.value:
        user.role = GlobalRole.EDITOR.value
    session.commit()
    current_app.logger.info('user %s verified, role now %s', user.id, user.role)
    return user_json(user)


@auth_bp.get('/me')
@authenticated
def me():
    identity = current_identity()
    user = get_db().get(User, identity.user_id)
    return user_json(user)
