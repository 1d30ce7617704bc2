from __future__ import annotations
"""Request payload validation helpers with consistent 400 semantics."""
from typing import Any, Iterable, Mapping, Type, TypeVar
import enum
from flask import abort

E = TypeVar('E', bound=enum.Enum)


def require_fields(data: Mapping[str, Any], *names: str):
    missing = [n for n in names if data.get(n) in (None, '')]
    if missing:
        abort(400, description=f"{', '.join(missing)} required")


def parse_enum(enum_cls: Type[E], value: Any, field_name: str, allowed: Iterable[E] = None) -> E:
    """Parse ``value`` into ``enum_cls`` (optionally restricted to ``allowed``) or abort 400."""
    try:
        member = enum_cls(value)
    except ValueError:
        member = None
    if member is None or (allowed is not None and member not in tuple(allowed)):
        abort(400, description=f'{field_name} invalid')
    return member


def parse_amount(value: Any, field_name: str = 'amount', allow_zero: bool = True) -> int:
    """Chip amounts are whole, non-negative numbers."""
    if isinstance(value, bool):
        abort(400, description=f'Invalid {field_name}')
    try:
        number = float(value)
    except (TypeError, ValueError):
        abort(400, description=f'Invalid {field_name}')
    if number != number or number < 0 or (number == 0 and not allow_zero) or not number.is_integer():
        abort(400, description=f'Invalid {field_name}')
    return int(number)


def parse_number(value: Any, field_name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        abort(400, description=f'{field_name} invalid')
    if number != number or number <= 0:
        abort(400, description=f'{field_name} invalid')
    return number

__all__ = ['require_fields', 'parse_enum', 'parse_amount', 'parse_number']
