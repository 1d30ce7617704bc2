from app import get_db
from app.models.audit import AuditLog
from app.models.authz import Group, GroupMembership
from app.models.notification import Notification
from tests.test_utils_seed import ensure_user, make_group, add_member, make_table


def _membership(group_id, user_id):
    return get_db().query(GroupMembership).filter_by(group_id=group_id, user_id=user_id).one_or_none()


def test_create_group_makes_caller_owner(client, auth):
    ed = ensure_user('ed', role='editor')
    resp = client.post('/api/groups', json={'name': 'Tuesday Regulars', 'description': 'home game'}, headers=auth(ed.id))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['owner_id'] == ed.id
    assert body['user_role'] == 'owner'
    # owner never holds a membership row
    assert _membership(body['id'], ed.id) is None
    dup = client.post('/api/groups', json={'name': 'Tuesday Regulars'}, headers=auth(ed.id))
    assert dup.status_code == 400


def test_plain_user_cannot_create_group(client, auth):
    u = ensure_user('u')
    resp = client.post('/api/groups', json={'name': 'Nope'}, headers=auth(u.id))
    assert resp.status_code == 403
    assert resp.get_json()['error']['reason'] == 'insufficient_role'


def test_group_detail_requires_relation(client, auth):
    owner = ensure_user('owner', role='editor')
    viewer = ensure_user('viewer', role='editor')
    outsider = ensure_user('outsider', role='editor')
    grp = make_group('Crew', owner)
    add_member(grp, viewer, 'viewer')
    ok = client.get(f'/api/groups/{grp.id}', headers=auth(viewer.id))
    assert ok.status_code == 200
    assert ok.get_json()['user_role'] == 'viewer'
    denied = client.get(f'/api/groups/{grp.id}', headers=auth(outsider.id))
    assert denied.status_code == 403
    assert denied.get_json()['error']['reason'] == 'no_relation'
    missing = client.get('/api/groups/9999', headers=auth(outsider.id))
    assert missing.status_code == 404
    assert missing.get_json()['error']['code'] == 'resource_not_found'


def test_update_group_owner_only_and_audited(client, auth):
    owner = ensure_user('owner', role='editor')
    editor = ensure_user('editor', role='editor')
    grp = make_group('Crew', owner)
    add_member(grp, editor, 'editor')
    denied = client.put(f'/api/groups/{grp.id}', json={'name': 'Hijacked'}, headers=auth(editor.id))
    assert denied.status_code == 403
    assert denied.get_json()['error']['reason'] == 'insufficient_role'
    resp = client.put(f'/api/groups/{grp.id}', json={'name': 'Crew 2', 'is_active': False}, headers=auth(owner.id))
    assert resp.status_code == 200
    assert resp.get_json()['is_active'] is False
    log = get_db().query(AuditLog).filter_by(action='GROUP.UPDATE').one()
    assert log.meta['changes']['name'] == {'before': 'Crew', 'after': 'Crew 2'}


def test_admin_bypasses_group_checks(client, auth):
    admin = ensure_user('root', role='admin')
    owner = ensure_user('owner', role='editor')
    grp = make_group('Crew', owner)
    resp = client.get(f'/api/groups/{grp.id}', headers=auth(admin.id))
    assert resp.status_code == 200
    assert resp.get_json()['user_role'] == 'admin'
    assert client.put(f'/api/groups/{grp.id}', json={'description': 'moderated'}, headers=auth(admin.id)).status_code == 200


def test_delete_group_refused_with_tables(client, auth):
    owner = ensure_user('owner', role='editor')
    grp = make_group('Crew', owner)
    make_table(owner, grp)
    resp = client.delete(f'/api/groups/{grp.id}', headers=auth(owner.id))
    assert resp.status_code == 400
    empty = make_group('Empty', owner)
    assert client.delete(f'/api/groups/{empty.id}', headers=auth(owner.id)).status_code == 200
    assert get_db().get(Group, empty.id) is None


def test_member_management(client, auth):
    owner = ensure_user('owner', role='editor')
    friend = ensure_user('friend', role='editor', email='friend@poker.test')
    grp = make_group('Crew', owner)
    headers = auth(owner.id)
    resp = client.post(f'/api/groups/{grp.id}/members', json={'email': 'friend@poker.test', 'role': 'editor'}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    assert resp.get_json()['role'] == 'editor'
    # duplicates and the owner are rejected
    assert client.post(f'/api/groups/{grp.id}/members', json={'user_id': friend.id}, headers=headers).status_code == 400
    assert client.post(f'/api/groups/{grp.id}/members', json={'user_id': owner.id}, headers=headers).status_code == 400
    assert client.post(f'/api/groups/{grp.id}/members', json={'user_id': friend.id, 'role': 'owner'}, headers=headers).status_code == 400

    members = client.get(f'/api/groups/{grp.id}/members', headers=auth(friend.id)).get_json()['data']
    assert members[0] == {'user_id': owner.id, 'username': 'owner', 'email': 'owner@example.com', 'role': 'owner'}
    assert [(m['username'], m['role']) for m in members[1:]] == [('friend', 'editor')]

    resp = client.put(f'/api/groups/{grp.id}/members/{friend.id}', json={'role': 'viewer'}, headers=headers)
    assert resp.status_code == 200
    assert _membership(grp.id, friend.id).role == 'viewer'

    note = get_db().query(Notification).filter_by(user_id=friend.id).one()
    assert note.type == 'membership'


def test_member_may_leave_but_not_remove_others(client, auth):
    owner = ensure_user('owner', role='editor')
    a = ensure_user('a', role='editor')
    b = ensure_user('b', role='editor')
    grp = make_group('Crew', owner)
    add_member(grp, a, 'editor')
    add_member(grp, b, 'viewer')
    denied = client.delete(f'/api/groups/{grp.id}/members/{b.id}', headers=auth(a.id))
    assert denied.status_code == 403
    assert client.delete(f'/api/groups/{grp.id}/members/{a.id}', headers=auth(a.id)).status_code == 200
    assert _membership(grp.id, a.id) is None
    assert client.delete(f'/api/groups/{grp.id}/members/{b.id}', headers=auth(owner.id)).status_code == 200
    assert client.delete(f'/api/groups/{grp.id}/members/{b.id}', headers=auth(owner.id)).status_code == 404


def test_transfer_ownership_keeps_exclusivity(client, auth):
    owner = ensure_user('owner', role='editor')
    heir = ensure_user('heir', role='editor')
    grp = make_group('Crew', owner)
    add_member(grp, heir, 'viewer')
    resp = client.post(f'/api/groups/{grp.id}/transfer-ownership', json={'user_id': heir.id}, headers=auth(owner.id))
    assert resp.status_code == 200, resp.get_json()
    assert resp.get_json()['owner_id'] == heir.id
    assert _membership(grp.id, heir.id) is None
    assert _membership(grp.id, owner.id).role == 'editor'
    # old owner lost owner powers
    again = client.post(f'/api/groups/{grp.id}/transfer-ownership', json={'user_id': owner.id}, headers=auth(owner.id))
    assert again.status_code == 403
    assert get_db().query(AuditLog).filter_by(action='GROUP.OWNER.TRANSFER').count() == 1


def test_my_groups_lists_roles_and_table_counts(client, auth):
    me = ensure_user('me', role='editor')
    other = ensure_user('other', role='editor')
    mine = make_group('Mine', me)
    theirs = make_group('Theirs', other)
    make_group('Unrelated', other)
    add_member(theirs, me, 'viewer')
    make_table(me, mine)
    data = client.get('/api/my-groups', headers=auth(me.id)).get_json()['data']
    assert [(g['name'], g['user_role'], g['table_count']) for g in data] == [('Mine', 'owner', 1), ('Theirs', 'viewer', 0)]


def test_join_request_flow(client, auth):
    owner = ensure_user('owner', role='editor')
    joiner = ensure_user('joiner', role='editor')
    grp = make_group('Crew', owner)
    resp = client.post(f'/api/groups/{grp.id}/join-request', headers=auth(joiner.id))
    assert resp.status_code == 201, resp.get_json()
    rid = resp.get_json()['id']
    assert client.post(f'/api/groups/{grp.id}/join-request', headers=auth(joiner.id)).status_code == 400

    owner_notes = client.get('/api/notifications', headers=auth(owner.id)).get_json()
    assert owner_notes['unread_count'] == 1
    assert owner_notes['data'][0]['request_id'] == rid

    # the requester cannot approve their own request
    assert client.post(f'/api/groups/{grp.id}/join-request/{rid}/approve', headers=auth(joiner.id)).status_code == 403
    status = client.get(f'/api/groups/{grp.id}/join-request/{rid}/status', headers=auth(joiner.id))
    assert status.get_json()['status'] == 'pending'

    approved = client.post(f'/api/groups/{grp.id}/join-request/{rid}/approve', headers=auth(owner.id))
    assert approved.status_code == 200
    assert approved.get_json()['status'] == 'approved'
    assert _membership(grp.id, joiner.id).role == 'viewer'
    assert client.post(f'/api/groups/{grp.id}/join-request/{rid}/reject', headers=auth(owner.id)).status_code == 400
    assert client.get(f'/api/groups/{grp.id}', headers=auth(joiner.id)).status_code == 200


def test_join_request_rejected_and_guards(client, auth):
    owner = ensure_user('owner', role='editor')
    joiner = ensure_user('joiner')
    nosy = ensure_user('nosy')
    grp = make_group('Crew', owner)
    closed = make_group('Closed', owner, is_active=False)
    assert client.post(f'/api/groups/{closed.id}/join-request', headers=auth(joiner.id)).status_code == 400
    assert client.post(f'/api/groups/{grp.id}/join-request', headers=auth(owner.id)).status_code == 400
    rid = client.post(f'/api/groups/{grp.id}/join-request', headers=auth(joiner.id)).get_json()['id']
    assert client.get(f'/api/groups/{grp.id}/join-request/{rid}/status', headers=auth(nosy.id)).status_code == 403
    rejected = client.post(f'/api/groups/{grp.id}/join-request/{rid}/reject', headers=auth(owner.id))
    assert rejected.get_json()['status'] == 'rejected'
    assert _membership(grp.id, joiner.id) is None
    note = get_db().query(Notification).filter_by(user_id=joiner.id).one()
    assert note.type == 'join_rejected'
