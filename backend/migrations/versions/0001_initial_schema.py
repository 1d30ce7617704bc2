"""initial schema: users, groups, memberships, tables and ledger

Revision ID: 0001_initial_schema
Revises: 
Create Date: 2026-10-17
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

NOW = sa.text('CURRENT_TIMESTAMP')


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False, unique=True),
        sa.Column('email', sa.String(length=128), unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='user'),
        sa.Column('is_blocked', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('is_verified', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('verification_token', sa.String(length=128)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.CheckConstraint("role IN ('admin','editor','user')", name='ck_users_role'),
    )
    op.create_index('ix_users_username', 'users', ['username'])
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_verification_token', 'users', ['verification_token'])

    op.create_table('groups',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False, unique=True),
        sa.Column('description', sa.Text()),
        sa.Column('owner_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
    )
    op.create_index('ix_groups_owner_id', 'groups', ['owner_id'])

    op.create_table('group_memberships',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='viewer'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.UniqueConstraint('group_id', 'user_id', name='uq_group_membership'),
        sa.CheckConstraint("role IN ('editor','viewer')", name='ck_group_memberships_role'),
    )
    op.create_index('ix_group_memberships_user_id', 'group_memberships', ['user_id'])

    op.create_table('group_join_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('decided_at', sa.DateTime(timezone=True)),
        sa.Column('decided_by', sa.Integer()),
    )
    op.create_index('ix_group_join_requests_group_id', 'group_join_requests', ['group_id'])
    op.create_index('ix_group_join_requests_user_id', 'group_join_requests', ['user_id'])

    op.create_table('poker_tables',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('small_blind', sa.Float(), nullable=False),
        sa.Column('big_blind', sa.Float(), nullable=False),
        sa.Column('minimum_buy_in', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('location', sa.String(length=255)),
        sa.Column('food', sa.String(length=255)),
        sa.Column('creator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('group_id', sa.Integer(), sa.ForeignKey('groups.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('game_date', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=NOW),
    )
    op.create_index('ix_poker_tables_creator_id', 'poker_tables', ['creator_id'])
    op.create_index('ix_poker_tables_group_id', 'poker_tables', ['group_id'])
    op.create_index('ix_poker_tables_is_active', 'poker_tables', ['is_active'])

    op.create_table('players',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('table_id', sa.Integer(), sa.ForeignKey('poker_tables.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('nickname', sa.String(length=128)),
        sa.Column('chips', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_buy_in', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('show_me', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('payment_method', sa.String(length=64)),
        sa.Column('payment_comment', sa.Text()),
    )
    op.create_index('ix_players_table_id', 'players', ['table_id'])
    op.create_index('ix_players_name', 'players', ['name'])

    for name in ('buy_ins', 'cash_outs'):
        op.create_table(name,
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('player_id', sa.Integer(), sa.ForeignKey('players.id', ondelete='CASCADE'), nullable=False),
            sa.Column('amount', sa.Integer(), nullable=False),
            sa.Column('timestamp', sa.DateTime(timezone=True), server_default=NOW),
        )
        op.create_index(f'ix_{name}_player_id', name, ['player_id'])

    op.create_table('notifications',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False, server_default=''),
        sa.Column('group_id', sa.Integer()),
        sa.Column('request_id', sa.Integer()),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_group_id', 'notifications', ['group_id'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_role', sa.String(length=16)),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=NOW),
    )
    op.create_index('ix_audit_logs_actor_user_id', 'audit_logs', ['actor_user_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])


def downgrade():
    for tbl in ['audit_logs', 'notifications', 'cash_outs', 'buy_ins', 'players', 'poker_tables',
                'group_join_requests', 'group_memberships', 'groups', 'users']:
        op.drop_table(tbl)
