from __future__ import annotations
from typing import Any, Dict
from flask import abort

_TRUE = {'1', 'true', 'yes', 'on'}
_FALSE = {'0', 'false', 'no', 'off'}


def parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ValueError(f'not a boolean: {value!r}')


def apply_filters(query, specs: Dict[str, Dict[str, Any]], params):
    """Apply query-string filters to a SQLAlchemy query.

    specs: { param_name: { 'column': model column, 'coerce': callable (optional) } }
    Each present parameter becomes ``column == coerced value``; bad values abort 400.
    """
    for name, meta in specs.items():
        raw = params.get(name)
        if raw is None or raw == '':
            continue
        value = raw
        if 'coerce' in meta:
            try:
                value = meta['coerce'](raw)
            except (TypeError, ValueError):
                abort(400, description=f'{name} invalid')
        query = query.filter(meta['column'] == value)
    return query

__all__ = ['parse_bool', 'apply_filters']
