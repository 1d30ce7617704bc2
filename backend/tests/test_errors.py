from sqlalchemy.exc import OperationalError
from tests.test_utils_seed import ensure_user, make_group


def test_unknown_path_returns_error_json(client):
    resp = client.get('/non-existent-path')
    assert resp.status_code == 404
    body = resp.get_json()
    assert body['error']['status'] == 404
    assert 'detail' in body['error']


def test_healthz(client):
    assert client.get('/healthz').get_json() == {'status': 'ok'}


def test_lookup_failure_is_503_not_denial(client, auth, monkeypatch):
    owner = ensure_user('owner', role='editor')
    grp = make_group('Crew', owner)
    headers = auth(owner.id)
    from app.services.lookups import SqlAccessLookups

    class LockedSession:
        def execute(self, *a, **k):
            raise OperationalError('SELECT', {}, Exception('database is locked'))

    real_get_group = SqlAccessLookups.get_group
    # user lookups keep working; only the group read hits the storage error
    monkeypatch.setattr(SqlAccessLookups, 'get_group',
                        lambda self, group_id: real_get_group(SqlAccessLookups(LockedSession()), group_id))
    resp = client.get(f'/api/groups/{grp.id}', headers=headers)
    assert resp.status_code == 503
    body = resp.get_json()
    assert body['error']['code'] == 'lookup_error'
    assert 'reason' not in body['error']


def test_internal_error_shape(client, auth, monkeypatch):
    import app.routes.stats as stats_mod
    u = ensure_user('u')
    headers = auth(u.id)

    class BoomSession:
        def execute(self, *a, **k):
            raise RuntimeError('explode')

    monkeypatch.setattr(stats_mod, 'get_db', lambda: BoomSession())
    resp = client.get('/api/statistics/players', headers=headers)
    assert resp.status_code == 500
    assert resp.get_json()['error']['detail'] == 'Unexpected error'
