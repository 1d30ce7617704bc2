"""Alembic environment for the bankroll schema.

The database URL comes from the same settings loader the app uses, so
``DATABASE_URL`` in ``.env`` drives both ``flask`` and ``alembic upgrade``.
"""
from __future__ import annotations
from logging.config import fileConfig
import os, sys

from alembic import context
from sqlalchemy import engine_from_config, pool

# Allow importing app models when run from backend/
sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

from dotenv import load_dotenv  # noqa: E402
from app.config.settings import load_settings  # noqa: E402
from app.models.authz import Base  # noqa: E402
import app.models.table  # noqa: E402,F401
import app.models.notification  # noqa: E402,F401
import app.models.audit  # noqa: E402,F401

load_dotenv()
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
config.set_main_option('sqlalchemy.url', load_settings()['DATABASE_URL'])
target_metadata = Base.metadata


def _configure(**kwargs):
    # batch mode so ALTERs work on SQLite; compare_type catches column type drift
    context.configure(target_metadata=target_metadata, render_as_batch=True, compare_type=True, **kwargs)


def run_offline():
    _configure(url=config.get_main_option('sqlalchemy.url'), literal_binds=True)
    with context.begin_transaction():
        context.run_migrations()


def run_online():
    engine = engine_from_config(config.get_section(config.config_ini_section) or {}, prefix='sqlalchemy.',
                                poolclass=pool.NullPool)
    with engine.connect() as connection:
        _configure(connection=connection)
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
