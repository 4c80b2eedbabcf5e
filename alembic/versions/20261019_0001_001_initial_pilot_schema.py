"""Initial schema - users, sessions, API keys, projects, vaults, agents, budget rules, events

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Money columns are BigInteger micro-dollars. Child rows cascade with their
parent, except events, which keep their row with agent_id set to NULL when
the agent is deleted.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, index=True, nullable=False),
        sa.Column('password_hash', sa.String(128), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('avatar', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('token', sa.String(64), unique=True, index=True, nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'api_keys',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('key_hash', sa.String(128), unique=True, nullable=False),
        sa.Column('key_prefix', sa.String(10), nullable=False),
        sa.Column('permissions', sa.JSON, nullable=True),
        sa.Column('last_used_at', sa.DateTime, nullable=True),
        sa.Column('expires_at', sa.DateTime, nullable=True),
        sa.Column('request_count', sa.Integer, server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), server_default='active'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # One vault per project
    op.create_table(
        'vaults',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('address', sa.String(64), unique=True, nullable=False),
        sa.Column('balance', sa.BigInteger, server_default='0'),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )

    op.create_table(
        'agents',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('project_id', sa.String(36), sa.ForeignKey('projects.id', ondelete='CASCADE'), index=True, nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('provider', sa.String(50), nullable=True),
        sa.Column('model', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), server_default='needs_setup', index=True),
        sa.Column('webhook_url', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # One budget rule per agent
    op.create_table(
        'agent_budget_rules',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='CASCADE'), unique=True, nullable=False),
        sa.Column('daily_limit', sa.BigInteger, server_default='0'),
        sa.Column('per_tx_limit', sa.BigInteger, server_default='0'),
        sa.Column('monthly_limit', sa.BigInteger, nullable=True),
        sa.Column('daily_spent', sa.BigInteger, server_default='0'),
        sa.Column('monthly_spent', sa.BigInteger, server_default='0'),
        sa.Column('updated_at', sa.DateTime, server_default=sa.func.now()),
    )

    # Ledger
    op.create_table(
        'events',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('type', sa.String(20), index=True, nullable=False),
        sa.Column('amount', sa.BigInteger, nullable=False),
        sa.Column('status', sa.String(20), server_default='pending'),
        sa.Column('tx_hash', sa.String(100), nullable=True),
        sa.Column('metadata', sa.Text, nullable=True),
        sa.Column('vault_id', sa.String(36), sa.ForeignKey('vaults.id', ondelete='CASCADE'), nullable=False),
        sa.Column('agent_id', sa.String(36), sa.ForeignKey('agents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime, server_default=sa.func.now()),
    )
    op.create_index('ix_events_vault_created', 'events', ['vault_id', 'created_at'])
    op.create_index('ix_events_agent_created', 'events', ['agent_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_events_agent_created', table_name='events')
    op.drop_index('ix_events_vault_created', table_name='events')
    op.drop_table('events')
    op.drop_table('agent_budget_rules')
    op.drop_table('agents')
    op.drop_table('vaults')
    op.drop_table('projects')
    op.drop_table('api_keys')
    op.drop_table('sessions')
    op.drop_table('users')
