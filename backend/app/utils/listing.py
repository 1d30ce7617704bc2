from __future__ import annotations
from typing import Tuple
from flask import request, abort, current_app
from sqlalchemy.orm import Query
from app.config.settings import DEFAULT_LIMIT, MAX_LIMIT


def normalize_pagination(limit_raw, offset_raw, default_limit: int = DEFAULT_LIMIT, max_limit: int = MAX_LIMIT):
    try:
        limit = int(limit_raw) if limit_raw is not None else default_limit
        offset = int(offset_raw) if offset_raw is not None else 0
    except ValueError:
        raise ValueError('limit/offset must be int')
    limit = max(1, min(limit, max_limit))
    offset = max(0, offset)
    return limit, offset


def apply_pagination(q: Query) -> Tuple[Query, int, int, int]:
    try:
        limit, offset = normalize_pagination(
            request.args.get('limit'),
            request.args.get('offset'),
            current_app.config.get('DEFAULT_PAGE_LIMIT', DEFAULT_LIMIT),
            current_app.config.get('MAX_PAGE_LIMIT', MAX_LIMIT),
        )
    except ValueError as e:
        abort(400, description=str(e))
    total = q.count()
    return q.offset(offset).limit(limit), total, limit, offset


def build_list_payload(rows: list, total: int, limit: int, offset: int):
    return {
        'data': rows,
        'pagination': {
            'total': total,
            'limit': limit,
            'offset': offset,
            'returned': len(rows)
        }
    }


def paginated(q: Query, serialize):
    """Paginate ``q`` from the request args and serialize each row."""
    paged_q, total, limit, offset = apply_pagination(q)
    rows = [serialize(r) for r in paged_q.all()]
    return build_list_payload(rows, total, limit, offset)

__all__ = ['normalize_pagination', 'apply_pagination', 'build_list_payload', 'paginated']
