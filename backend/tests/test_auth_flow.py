from app import get_db
from app.models.authz import User
from tests.test_utils_seed import ensure_user


def _login(client, username, password='pw'):
    return client.post('/api/auth/login', json={'username': username, 'password': password})


def test_login_and_me(client):
    ensure_user('alice', role='editor')
    resp = _login(client, 'alice')
    assert resp.status_code == 200, resp.get_json()
    body = resp.get_json()
    assert body['user']['role'] == 'editor'
    headers = {'Authorization': f"Bearer {body['access_token']}"}
    me = client.get('/api/auth/me', headers=headers)
    assert me.status_code == 200
    assert me.get_json()['username'] == 'alice'


def test_login_by_email(client):
    ensure_user('bob', email='bob@poker.test')
    resp = client.post('/api/auth/login', json={'email': 'bob@poker.test', 'password': 'pw'})
    assert resp.status_code == 200


def test_login_wrong_password(client):
    ensure_user('carol')
    resp = _login(client, 'carol', 'nope')
    assert resp.status_code == 401
    assert resp.get_json()['error']['status'] == 401


def test_login_blocked_account(client):
    ensure_user('mallory', blocked=True)
    resp = _login(client, 'mallory')
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'account_blocked'


def test_missing_and_invalid_token(client):
    resp = client.get('/api/auth/me')
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'unauthenticated'
    resp = client.get('/api/auth/me', headers={'Authorization': 'Bearer not-a-jwt'})
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'unauthenticated'


def test_blocked_after_token_issued_is_rejected(client, auth):
    u = ensure_user('dave', role='editor')
    headers = auth(u.id, 'editor')
    assert client.get('/api/auth/me', headers=headers).status_code == 200
    session = get_db()
    session.get(User, u.id).is_blocked = True
    session.commit()
    resp = client.get('/api/auth/me', headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['code'] == 'account_blocked'


def test_deleted_user_token_is_unauthenticated(client, auth):
    u = ensure_user('erin')
    headers = auth(u.id)
    session = get_db()
    session.delete(session.get(User, u.id))
    session.commit()
    resp = client.get('/api/auth/me', headers=headers)
    assert resp.status_code == 401
    assert resp.get_json()['error']['code'] == 'unauthenticated'


def test_stored_role_wins_over_token_claim(client, auth):
    u = ensure_user('frank', role='user')
    # token claims admin, database says user
    headers = auth(u.id, 'admin')
    resp = client.get('/api/users', headers=headers)
    assert resp.status_code == 403
    assert resp.get_json()['error']['reason'] == 'insufficient_role'


def test_register_verify_promotes_to_editor(client):
    resp = client.post('/api/auth/register', json={'username': 'gina', 'email': 'gina@example.com', 'password': 'secret'})
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['is_verified'] is False
    # unverified accounts cannot log in yet
    blocked = _login(client, 'gina', 'secret')
    assert blocked.status_code == 403
    assert blocked.get_json()['error']['code'] == 'email_not_verified'
    token = get_db().query(User).filter_by(username='gina').one().verification_token
    assert token
    verified = client.post('/api/auth/verify-email', json={'token': token})
    assert verified.status_code == 200
    assert verified.get_json()['role'] == 'editor'
    assert _login(client, 'gina', 'secret').status_code == 200
    # tokens are single use
    assert client.post('/api/auth/verify-email', json={'token': token}).status_code == 400


def test_register_validation(client):
    ensure_user('henry')
    assert client.post('/api/auth/register', json={'username': 'x'}).status_code == 400
    dup = client.post('/api/auth/register', json={'username': 'henry', 'email': 'other@example.com', 'password': 'secret'})
    assert dup.status_code == 400
    short = client.post('/api/auth/register', json={'username': 'ivy', 'email': 'ivy@example.com', 'password': 'pw'})
    assert short.status_code == 400


def test_login_name_shared_by_username_and_email(client):
    ensure_user('alice', role='editor', password='alice-pw')
    # legacy row whose email equals another account's username
    ensure_user('bob', role='editor', password='bob-pw', email='alice')
    resp = _login(client, 'alice', 'alice-pw')
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['user']['username'] == 'alice'
    assert _login(client, 'alice', 'bob-pw').status_code == 401
    assert _login(client, 'bob', 'bob-pw').status_code == 200


def test_register_rejects_names_colliding_across_username_and_email(client):
    ensure_user('alice', email='alice@example.com')
    ensure_user('bob', email='bob@example.com')
    both = client.post('/api/auth/register', json={'username': 'alice', 'email': 'bob@example.com', 'password': 'secret'})
    assert both.status_code == 400
    as_email = client.post('/api/auth/register',
                           json={'username': 'bob@example.com', 'email': 'new@example.com', 'password': 'secret'})
    assert as_email.status_code == 400
    as_username = client.post('/api/auth/register', json={'username': 'carl', 'email': 'alice', 'password': 'secret'})
    assert as_username.status_code == 400
    assert get_db().query(User).count() == 2
