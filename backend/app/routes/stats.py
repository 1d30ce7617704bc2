from flask import Blueprint
from sqlalchemy import select
from app import get_db
from app.decorators.auth import authenticated
from app.models.table import PokerTable, Player
from app.services.policy import current_identity, visible_tables_clause

stats_bp = Blueprint('stats', __name__)


@stats_bp.get('/players')
@authenticated
def player_names():
    """Distinct player names from finished games the caller can see."""
    stmt = (
        select(Player.name).distinct()
        .join(PokerTable, PokerTable.id == Player.table_id)
        .where(PokerTable.is_active.is_(False))
    )
    clause = visible_tables_clause(current_identity(), PokerTable)
    if clause is not None:
        stmt = stmt.where(clause)
    names = get_db().execute(stmt.order_by(Player.name.asc())).scalars().all()
    return {'data': names}
