from __future__ import annotations
"""Audit logging decorator for route handlers that change authorization-relevant data.

Usage examples:

@audit_log('GROUP.CREATE', entity='Group', entity_id_key='id', meta_keys=['name'])
def create_group():
    ... return {'id': grp.id, 'name': grp.name}, 201

@audit_log('TABLE.STATUS.SET', entity='Table', entity_id_arg='table_id',
           diff_keys=['is_active'], pre_fetch=lambda a, kw: _snapshot(kw['table_id']))
def set_table_status(table_id): ...

Parameters:
  action: audit action code
  entity: entity label (User, Group, Table)
  entity_id_key: key in the returned JSON object whose value becomes entity_id
  entity_id_arg: view keyword argument used when entity_id_key is absent from the payload
  meta_keys: keys projected from the returned JSON into meta
  diff_keys / pre_fetch: snapshot taken before the view runs; changed keys land in meta['changes']

Only successful responses (status < 400) are audited. Audit failures are logged and
never change the view's response.
"""

from functools import wraps
from typing import Any, Callable, Iterable, Optional, Dict

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from app.services.audit import add_audit
from app import get_db


def _extract_payload(rv: Any):
    """Return (data, status) for the common Flask return shapes."""
    if isinstance(rv, tuple) and rv:
        status = rv[1] if len(rv) > 1 and isinstance(rv[1], int) else 200
        return rv[0], status
    return rv, 200


def _changes(before: Dict[str, Any], after: Dict[str, Any], keys: Iterable[str]) -> Dict[str, Any]:
    out = {}
    for k in keys:
        if k in before and k in after and before[k] != after[k]:
            out[k] = {'before': before[k], 'after': after[k]}
    return out


def audit_log(
    action: str,
    *,
    entity: Optional[str] = None,
    entity_id_key: Optional[str] = None,
    entity_id_arg: Optional[str] = None,
    meta_keys: Optional[Iterable[str]] = None,
    diff_keys: Optional[Iterable[str]] = None,
    pre_fetch: Optional[Callable[[tuple, dict], Dict[str, Any]]] = None,
):
    def outer(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            before = pre_fetch(args, kwargs) if (diff_keys and pre_fetch) else None
            rv = fn(*args, **kwargs)
            data, status = _extract_payload(rv)
            if status >= 400:
                return rv
            if not isinstance(data, dict):
                data = {}
            entity_id = None
            if entity_id_key and entity_id_key in data:
                entity_id = data.get(entity_id_key)
            elif entity_id_arg and entity_id_arg in kwargs:
                entity_id = kwargs.get(entity_id_arg)
            meta = {k: data.get(k) for k in (meta_keys or []) if k in data}
            if before:
                changes = _changes(before, data, diff_keys)
                if changes:
                    meta['changes'] = changes
            session = get_db()
            try:
                add_audit(action, entity, entity_id, meta)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                current_app.logger.exception('audit write failed for %s', action)
            return rv
        return wrapper
    return outer
