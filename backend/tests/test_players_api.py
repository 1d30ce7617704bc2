from app import get_db
from app.models.table import Player, BuyIn, CashOut
from tests.test_utils_seed import ensure_user, make_group, add_member, make_table, add_player, set_table_active


def _setup():
    owner = ensure_user('owner', role='editor')
    editor = ensure_user('editor', role='editor')
    viewer = ensure_user('viewer', role='editor')
    grp = make_group('Crew', owner)
    add_member(grp, editor, 'editor')
    add_member(grp, viewer, 'viewer')
    table = make_table(owner, grp, minimum_buy_in=150)
    return owner, editor, viewer, table


def test_add_player_records_initial_buyin(client, auth):
    owner, editor, viewer, table = _setup()
    resp = client.post(f'/api/tables/{table.id}/players', json={'name': 'Noa', 'chips': 400}, headers=auth(editor.id))
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['chips'] == 400 and body['total_buy_in'] == 400
    assert [b['amount'] for b in body['buy_ins']] == [400]
    # chips omitted falls back to the table minimum
    resp = client.post(f'/api/tables/{table.id}/players', json={'name': 'Omer'}, headers=auth(editor.id))
    assert resp.get_json()['chips'] == 150
    assert client.post(f'/api/tables/{table.id}/players', json={}, headers=auth(editor.id)).status_code == 400


def test_viewer_cannot_touch_ledger(client, auth):
    owner, editor, viewer, table = _setup()
    resp = client.post(f'/api/tables/{table.id}/players', json={'name': 'Noa'}, headers=auth(viewer.id))
    assert resp.status_code == 403
    assert resp.get_json()['error']['reason'] == 'view_only'


def test_inactive_table_blocks_ledger_for_everyone(client, auth):
    owner, editor, viewer, table = _setup()
    p = add_player(table)
    set_table_active(table.id, False)
    admin = ensure_user('root', role='admin')
    for user in (editor, owner, admin):
        resp = client.post(f'/api/tables/{table.id}/players/{p.id}/buyins', json={'amount': 50}, headers=auth(user.id))
        assert resp.status_code == 403, user.username
        assert resp.get_json()['error']['reason'] == 'table_inactive'


def test_buyins_add_and_delete(client, auth):
    owner, editor, viewer, table = _setup()
    p = add_player(table, chips=100)
    headers = auth(editor.id)
    resp = client.post(f'/api/tables/{table.id}/players/{p.id}/buyins', json={'amount': 50}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body['player']['chips'] == 150 and body['player']['total_buy_in'] == 150
    bid = body['id']
    assert client.post(f'/api/tables/{table.id}/players/{p.id}/buyins', json={'amount': 0}, headers=headers).status_code == 400
    assert client.post(f'/api/tables/{table.id}/players/{p.id}/buyins', json={'amount': 'lots'}, headers=headers).status_code == 400

    resp = client.delete(f'/api/tables/{table.id}/buyins/{bid}', headers=headers)
    assert resp.status_code == 200
    assert resp.get_json()['player']['total_buy_in'] == 100
    assert get_db().get(BuyIn, bid) is None
    assert client.delete(f'/api/tables/{table.id}/buyins/{bid}', headers=headers).status_code == 404


def test_buyin_on_player_of_another_table_is_not_found(client, auth):
    owner, editor, viewer, table = _setup()
    elsewhere = make_table(owner, None, name='elsewhere')
    p = add_player(elsewhere)
    resp = client.post(f'/api/tables/{table.id}/players/{p.id}/buyins', json={'amount': 10}, headers=auth(owner.id))
    assert resp.status_code == 404


def test_cashout_replaces_previous_and_reactivate(client, auth):
    owner, editor, viewer, table = _setup()
    p = add_player(table, chips=200)
    headers = auth(editor.id)
    first = client.post(f'/api/tables/{table.id}/players/{p.id}/cashouts', json={'amount': 120}, headers=headers)
    assert first.status_code == 201, first.get_json()
    assert first.get_json()['player']['active'] is False
    assert first.get_json()['player']['chips'] == 0
    second = client.post(f'/api/tables/{table.id}/players/{p.id}/cashouts', json={'amount': 180}, headers=headers)
    assert [c['amount'] for c in second.get_json()['player']['cash_outs']] == [180]
    assert get_db().query(CashOut).filter_by(player_id=p.id).count() == 1

    back = client.put(f'/api/tables/{table.id}/players/{p.id}/reactivate', headers=headers)
    assert back.status_code == 200
    assert back.get_json()['player']['active'] is True
    assert back.get_json()['player']['cash_outs'] == []


def test_player_updates_and_removal(client, auth):
    owner, editor, viewer, table = _setup()
    p = add_player(table)
    headers = auth(editor.id)
    assert client.put(f'/api/tables/{table.id}/players/{p.id}/chips', json={'chips': 75}, headers=headers).get_json()['chips'] == 75
    assert client.put(f'/api/tables/{table.id}/players/{p.id}/showme', json={'show_me': False}, headers=headers).get_json()['show_me'] is False
    pay = client.put(f'/api/tables/{table.id}/players/{p.id}/payment',
                     json={'payment_method': 'bit', 'payment_comment': 'paid at the door'}, headers=headers)
    assert pay.status_code == 200
    assert pay.get_json()['payment_method'] == 'bit'
    assert client.delete(f'/api/tables/{table.id}/players/{p.id}', headers=headers).status_code == 200
    assert get_db().get(Player, p.id) is None
