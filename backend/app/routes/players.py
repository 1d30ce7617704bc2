"""Player ledger for a single table: seats, buy-ins and cash-outs.

Every route runs the table chain with a ledger action, so an inactive table
answers 403 with reason ``table_inactive`` even for admins.
"""
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from app import get_db
from app.constants.roles import GlobalRole, TableAction
from app.decorators.auth import table_route
from app.errors import ResourceNotFound
from app.models.table import Player, BuyIn, CashOut
from app.routes.tables import get_table, player_json, buyin_json, cashout_json
from app.utils.filters import parse_bool
from app.utils.validation import require_fields, parse_amount

players_bp = Blueprint('players', __name__)

MUTATORS = (GlobalRole.ADMIN, GlobalRole.EDITOR)


def _get_player(table_id: int, player_id: int) -> Player:
    p = get_db().get(Player, player_id)
    if not p or p.table_id != table_id:
        raise ResourceNotFound('player not found')
    return p


@players_bp.post('/<int:table_id>/players')
@table_route(TableAction.ADD_PLAYER, roles=MUTATORS)
def add_player(table_id: int):
    data = request.json or {}
    require_fields(data, 'name')
    t = get_table(table_id)
    chips = parse_amount(data['chips'], 'chips') if data.get('chips') not in (None, '') else 0
    initial = chips or t.minimum_buy_in or 0
    try:
        active = parse_bool(data.get('active', True))
        show_me = parse_bool(data.get('show_me', True))
    except ValueError:
        abort(400, description='active/show_me invalid')
    p = Player(table_id=table_id, name=data['name'], nickname=data.get('nickname'), chips=initial,
               total_buy_in=initial, active=active, show_me=show_me)
    p.buy_ins.append(BuyIn(amount=initial))
    session = get_db()
    session.add(p)
    session.commit()
    return player_json(p), 201


@players_bp.delete('/<int:table_id>/players/<int:player_id>')
@table_route(TableAction.REMOVE_PLAYER, roles=MUTATORS)
def remove_player(table_id: int, player_id: int):
    session = get_db()
    p = _get_player(table_id, player_id)
    session.delete(p)
    session.commit()
    return {'message': 'Player removed'}


@players_bp.put('/<int:table_id>/players/<int:player_id>/chips')
@table_route(TableAction.UPDATE_PLAYER, roles=MUTATORS)
def update_chips(table_id: int, player_id: int):
    data = request.json or {}
    if 'chips' not in data:
        abort(400, description='chips required')
    p = _get_player(table_id, player_id)
    p.chips = parse_amount(data['chips'], 'chips')
    get_db().commit()
    return {'id': p.id, 'chips': p.chips}


@players_bp.put('/<int:table_id>/players/<int:player_id>/showme')
@table_route(TableAction.UPDATE_PLAYER, roles=MUTATORS)
def update_show_me(table_id: int, player_id: int):
    data = request.json or {}
    try:
        show_me = parse_bool(data['show_me'])
    except (KeyError, ValueError):
        abort(400, description='show_me required')
    p = _get_player(table_id, player_id)
    p.show_me = show_me
    get_db().commit()
    return {'id': p.id, 'show_me': p.show_me}


@players_bp.put('/<int:table_id>/players/<int:player_id>/payment')
@table_route(TableAction.UPDATE_PLAYER, roles=MUTATORS)
def update_payment(table_id: int, player_id: int):
    data = request.json or {}
    p = _get_player(table_id, player_id)
    p.payment_method = data.get('payment_method') or None
    p.payment_comment = data.get('payment_comment') or None
    get_db().commit()
    return player_json(p)


@players_bp.post('/<int:table_id>/players/<int:player_id>/buyins')
@table_route(TableAction.ADD_BUYIN, roles=MUTATORS)
def add_buyin(table_id: int, player_id: int):
    amount = parse_amount((request.json or {}).get('amount'), 'amount for buyin', allow_zero=False)
    p = _get_player(table_id, player_id)
    b = BuyIn(amount=amount)
    p.buy_ins.append(b)
    p.chips = (p.chips or 0) + amount
    p.total_buy_in = (p.total_buy_in or 0) + amount
    get_db().commit()
    body = buyin_json(b)
    body['player'] = player_json(p)
    return body, 201


@players_bp.delete('/<int:table_id>/buyins/<int:buyin_id>')
@table_route(TableAction.DELETE_BUYIN, roles=MUTATORS)
def delete_buyin(table_id: int, buyin_id: int):
    session = get_db()
    row = session.execute(
        select(BuyIn, Player).join(Player, Player.id == BuyIn.player_id)
        .where(BuyIn.id == buyin_id, Player.table_id == table_id)
    ).first()
    if not row:
        raise ResourceNotFound('buy-in not found')
    b, p = row
    p.total_buy_in = (p.total_buy_in or 0) - b.amount
    p.chips = (p.chips or 0) - b.amount
    p.buy_ins.remove(b)
    session.commit()
    return {'message': 'Buy-in deleted successfully', 'player': player_json(p)}


@players_bp.post('/<int:table_id>/players/<int:player_id>/cashouts')
@table_route(TableAction.ADD_CASHOUT, roles=MUTATORS)
def add_cashout(table_id: int, player_id: int):
    amount = parse_amount((request.json or {}).get('amount'), 'amount for cashout')
    session = get_db()
    p = _get_player(table_id, player_id)
    # One cash-out per player; a new one replaces the last.
    p.cash_outs.clear()
    session.flush()
    c = CashOut(amount=amount)
    p.cash_outs.append(c)
    p.active = False
    p.chips = 0
    session.commit()
    current_app.logger.info('player %s on table %s cashed out %s', p.id, table_id, amount)
    body = cashout_json(c)
    body['player'] = player_json(p)
    return body, 201


@players_bp.put('/<int:table_id>/players/<int:player_id>/reactivate')
@table_route(TableAction.REACTIVATE_PLAYER, roles=MUTATORS)
def reactivate_player(table_id: int, player_id: int):
    session = get_db()
    p = _get_player(table_id, player_id)
    p.cash_outs.clear()
    p.active = True
    session.commit()
    return {'active': True, 'player': player_json(p)}
