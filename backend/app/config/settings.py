"""Environment-driven defaults merged into ``app.config`` by create_app.

Values come from the process environment (``.env`` is loaded by the app package).
A config dict passed to create_app overrides anything set here.
"""
from __future__ import annotations
import os
from datetime import timedelta
from typing import Any, Dict

DEFAULT_LIMIT = 50
MAX_LIMIT = 200


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == '':
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f'{name} must be an integer, got {raw!r}')


def load_settings() -> Dict[str, Any]:
    return {
        'DATABASE_URL': os.getenv('DATABASE_URL', 'sqlite:///dev.db'),
        'JWT_SECRET_KEY': os.getenv('JWT_SECRET_KEY', 'dev-secret'),
        'JWT_ACCESS_TOKEN_EXPIRES': timedelta(hours=_int_env('JWT_ACCESS_TOKEN_HOURS', 24)),
        'LOG_LEVEL': os.getenv('LOG_LEVEL', 'INFO').upper(),
        'DEFAULT_PAGE_LIMIT': _int_env('DEFAULT_PAGE_LIMIT', DEFAULT_LIMIT),
        'MAX_PAGE_LIMIT': _int_env('MAX_PAGE_LIMIT', MAX_LIMIT),
        'MIN_PASSWORD_LENGTH': _int_env('MIN_PASSWORD_LENGTH', 4),
    }

__all__ = ['load_settings', 'DEFAULT_LIMIT', 'MAX_LIMIT']
