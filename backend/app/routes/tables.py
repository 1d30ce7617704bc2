from datetime import datetime
from flask import Blueprint, request, abort, current_app
from sqlalchemy import select
from app import get_db
from app.constants.roles import GlobalRole, GroupRole, TableAction
from app.decorators.auth import authenticated, require_roles, table_route
from app.decorators.audit import audit_log
from app.errors import ResourceNotFound
from app.models.table import PokerTable
from app.services.audit import add_audit
from app.services.policy import current_identity, authorize_group, authorize_table, visible_tables_clause
from app.utils.filters import apply_filters, parse_bool
from app.utils.listing import paginated
from app.utils.validation import require_fields, parse_amount, parse_number

tables_bp = Blueprint('tables', __name__)

MUTATORS = (GlobalRole.ADMIN, GlobalRole.EDITOR)


def _iso(value):
    return value.isoformat() if value else None


def buyin_json(b):
    return {'id': b.id, 'player_id': b.player_id, 'amount': b.amount, 'timestamp': _iso(b.timestamp)}


def cashout_json(c):
    return {'id': c.id, 'player_id': c.player_id, 'amount': c.amount, 'timestamp': _iso(c.timestamp)}


def player_json(p):
    return {
        'id': p.id,
        'table_id': p.table_id,
        'name': p.name,
        'nickname': p.nickname,
        'chips': p.chips,
        'total_buy_in': p.total_buy_in,
        'active': p.active,
        'show_me': p.show_me,
        'payment_method': p.payment_method,
        'payment_comment': p.payment_comment,
        'buy_ins': [buyin_json(b) for b in p.buy_ins],
        'cash_outs': [cashout_json(c) for c in p.cash_outs],
    }


def table_json(t: PokerTable, with_players: bool = True):
    body = {
        'id': t.id,
        'name': t.name,
        'small_blind': t.small_blind,
        'big_blind': t.big_blind,
        'minimum_buy_in': t.minimum_buy_in,
        'location': t.location,
        'food': t.food,
        'creator_id': t.creator_id,
        'group_id': t.group_id,
        'is_active': t.is_active,
        'game_date': _iso(t.game_date),
        'created_at': _iso(t.created_at),
    }
    if with_players:
        body['players'] = [player_json(p) for p in t.players]
    else:
        body['player_count'] = len(t.players)
    return body


def get_table(table_id: int) -> PokerTable:
    t = get_db().get(PokerTable, table_id)
    if not t:
        raise ResourceNotFound('table not found')
    return t


def _parse_date(value, field_name='game_date'):
    if value in (None, ''):
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        abort(400, description=f'{field_name} invalid')


def _parse_group_id(value):
    if value in (None, ''):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description='group_id invalid')


def _check_blinds(small_blind: float, big_blind: float):
    if big_blind < small_blind:
        abort(400, description='big_blind must be at least small_blind')


@tables_bp.get('/tables')
@authenticated
def list_tables():
    identity = current_identity()
    q = get_db().query(PokerTable)
    clause = visible_tables_clause(identity, PokerTable)
    if clause is not None:
        q = q.filter(clause)
    q = apply_filters(q, {
        'group_id': {'column': PokerTable.group_id, 'coerce': int},
        'is_active': {'column': PokerTable.is_active, 'coerce': parse_bool},
    }, request.args)
    q = q.order_by(PokerTable.created_at.desc(), PokerTable.id.desc())
    return paginated(q, lambda t: table_json(t, with_players=False))


@tables_bp.post('/tables')
@authenticated
@require_roles(*MUTATORS)
@audit_log('TABLE.CREATE', entity='Table', entity_id_key='id', meta_keys=['name', 'group_id'])
def create_table():
    data = request.json or {}
    require_fields(data, 'name', 'small_blind', 'big_blind')
    small_blind = parse_number(data['small_blind'], 'small_blind')
    big_blind = parse_number(data['big_blind'], 'big_blind')
    _check_blinds(small_blind, big_blind)
    group_id = _parse_group_id(data.get('group_id'))
    if group_id is not None:
        # Creating inside a group needs at least editor standing there.
        authorize_group(group_id, GroupRole.EDITOR)
    t = PokerTable(
        name=data['name'],
        small_blind=small_blind,
        big_blind=big_blind,
        minimum_buy_in=parse_amount(data.get('minimum_buy_in', 0), 'minimum_buy_in'),
        location=data.get('location'),
        food=data.get('food'),
        creator_id=current_identity().user_id,
        group_id=group_id,
        is_active=True,
        game_date=_parse_date(data.get('game_date')),
    )
    session = get_db()
    session.add(t)
    session.commit()
    return table_json(t), 201


@tables_bp.get('/tables/<int:table_id>')
@table_route(TableAction.VIEW)
def get_table_detail(table_id: int):
    return table_json(get_table(table_id))


@tables_bp.put('/tables/<int:table_id>')
@table_route(TableAction.EDIT, roles=MUTATORS)
def update_table(table_id: int):
    session = get_db()
    t = get_table(table_id)
    data = request.json or {}
    moving = False
    if 'group_id' in data:
        group_id = _parse_group_id(data['group_id'])
        moving = group_id != t.group_id
        if moving:
            # Moving a ledger between groups takes the same standing as deleting it.
            authorize_table(table_id, TableAction.DELETE)
            if group_id is not None:
                authorize_group(group_id, GroupRole.EDITOR)
    if 'name' in data:
        if not data['name']:
            abort(400, description='name cannot be empty')
        t.name = data['name']
    small_blind = parse_number(data['small_blind'], 'small_blind') if 'small_blind' in data else t.small_blind
    big_blind = parse_number(data['big_blind'], 'big_blind') if 'big_blind' in data else t.big_blind
    _check_blinds(small_blind, big_blind)
    t.small_blind, t.big_blind = small_blind, big_blind
    if 'minimum_buy_in' in data:
        t.minimum_buy_in = parse_amount(data['minimum_buy_in'], 'minimum_buy_in')
    for field in ('location', 'food'):
        if field in data:
            setattr(t, field, data[field])
    if 'game_date' in data:
        t.game_date = _parse_date(data['game_date'])
    if moving:
        add_audit('TABLE.GROUP.SET', 'Table', t.id, {'before': t.group_id, 'after': group_id})
        t.group_id = group_id
    session.commit()
    return table_json(t)


@tables_bp.delete('/tables/<int:table_id>')
@table_route(TableAction.DELETE, roles=MUTATORS)
def delete_table(table_id: int):
    session = get_db()
    t = get_table(table_id)
    meta = {'name': t.name, 'group_id': t.group_id}
    session.delete(t)
    add_audit('TABLE.DELETE', 'Table', table_id, meta)
    session.commit()
    current_app.logger.info('table %s deleted', table_id)
    return {'message': 'Table deleted'}


def _prefetch_status(table_id: int):
    t = get_db().get(PokerTable, table_id)
    return {'is_active': t.is_active} if t else {}


@tables_bp.put('/tables/<int:table_id>/status')
@table_route(TableAction.CHANGE_STATUS, roles=MUTATORS)
@audit_log('TABLE.STATUS.SET', entity='Table', entity_id_key='id', diff_keys=['is_active'],
           pre_fetch=lambda a, kw: _prefetch_status(kw.get('table_id')))
def set_table_status(table_id: int):
    data = request.json or {}
    if 'is_active' not in data:
        abort(400, description='is_active required')
    try:
        is_active = parse_bool(data['is_active'])
    except ValueError:
        abort(400, description='is_active invalid')
    t = get_table(table_id)
    t.is_active = is_active
    get_db().commit()
    return {'id': t.id, 'is_active': t.is_active}


@tables_bp.get('/share/<int:table_id>')
def shared_table(table_id: int):
    """Public read-only snapshot behind a share link; no token required."""
    t = get_db().execute(select(PokerTable).where(PokerTable.id == table_id)).scalar_one_or_none()
    if not t:
        raise ResourceNotFound('table not found')
    return table_json(t)
