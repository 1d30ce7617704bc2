#!/usr/bin/env python
"""Idempotent bootstrap for the first admin account.

Usage:
    python backend/scripts/seed_admin.py                 # create admin from SEED_ADMIN_* env vars
    python backend/scripts/seed_admin.py --username boss --email boss@example.com
    python backend/scripts/seed_admin.py --dry-run       # run logic then rollback (no DB changes)
    python backend/scripts/seed_admin.py --promote       # also promote an existing account to admin
"""
from __future__ import annotations
import os, sys, argparse, textwrap
from sqlalchemy import select, text
from sqlalchemy.exc import SQLAlchemyError

# Allow running from repo root
sys.path.append(os.path.abspath('backend'))

from app import create_app, get_db  # type: ignore
from app.constants.roles import GlobalRole
from app.models.authz import Base, User
import app.models.table  # noqa: F401
import app.models.notification  # noqa: F401
import app.models.audit  # noqa: F401
from app.services.audit import add_audit


def ensure_schema(session):
    try:
        session.execute(text('SELECT 1 FROM users LIMIT 1'))
    except SQLAlchemyError:
        # Bootstrap only; real environments run `alembic upgrade head`
        session.rollback()
        Base.metadata.create_all(session.get_bind())
        print('[INFO] Schema created from models.')


def ensure_admin(session, username: str, email: str, password: str, promote: bool = False):
    """Return (user, created). Existing accounts are left alone unless ``promote``."""
    existing = session.execute(
        select(User).where((User.username == username) | (User.email == email))
    ).scalar_one_or_none()
    if existing:
        if promote and existing.role != GlobalRole.ADMIN.value:
            existing.role = GlobalRole.ADMIN.value
            existing.is_blocked = False
            add_audit('USER.ROLE.SET', 'User', existing.id, {'role': GlobalRole.ADMIN.value, 'source': 'seed'})
            print(f"[INFO] Promoted {existing.username} to admin.")
        return existing, False
    user = User(username=username, email=email, role=GlobalRole.ADMIN.value, is_verified=True)
    user.set_password(password)
    session.add(user)
    session.flush()
    add_audit('USER.CREATE', 'User', user.id, {'username': username, 'role': user.role, 'source': 'seed'})
    print(f"[INFO] Created admin user {username} <{email}> with temporary password.")
    return user, True


def parse_args():
    p = argparse.ArgumentParser(
        description="Seed the initial admin account",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""Examples:\n  seed normally: seed_admin.py\n  dry run: seed_admin.py --dry-run\n  promote: seed_admin.py --username alice --promote\n""")
    )
    p.add_argument('--username', default=os.getenv('SEED_ADMIN_USERNAME', 'admin'))
    p.add_argument('--email', default=os.getenv('SEED_ADMIN_EMAIL', 'admin@example.com'))
    p.add_argument('--password', default=os.getenv('SEED_ADMIN_PASSWORD', 'ChangeMe123!'))
    p.add_argument('--promote', action='store_true', help='Promote an existing matching account to admin')
    p.add_argument('--dry-run', action='store_true', help='Rollback after operations (no commit)')
    return p.parse_args()


def main():
    args = parse_args()
    app = create_app()
    with app.app_context():
        session = get_db()
        ensure_schema(session)
        session.commit()

    with app.app_context():
        session = get_db()
        user, created = ensure_admin(session, args.username, args.email, args.password, promote=args.promote)
        if args.dry_run:
            session.rollback()
            print(f"[DRY-RUN] (rolled back) admin would be created: {created}")
        else:
            session.commit()
            print(f"[DONE] admin id={user.id} created={created}")


if __name__ == '__main__':
    main()
