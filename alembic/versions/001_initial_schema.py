"""Initial schema: users, assets, holdings, price history.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-17

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('google_id', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('password_reset_token', sa.String(255), nullable=True),
        sa.Column('password_reset_expires', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('google_id'),
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_password_reset_token', 'users', ['password_reset_token'])

    op.create_table(
        'assets',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('symbol', sa.String(20), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('current_price', sa.Numeric(precision=24, scale=8), nullable=True),
        sa.Column('market_cap', sa.Numeric(precision=24, scale=2), nullable=True),
        sa.Column('volume_24h', sa.Numeric(precision=24, scale=2), nullable=True),
        sa.Column('price_change_24h', sa.Numeric(precision=12, scale=4), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_assets_symbol', 'assets', ['symbol'], unique=True)

    op.create_table(
        'holdings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('asset_id', sa.Uuid(), sa.ForeignKey('assets.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('amount', sa.Numeric(precision=24, scale=8), nullable=False),
        sa.Column('purchase_price', sa.Numeric(precision=24, scale=8), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('purchase_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('user_id', 'asset_id', name='uq_holdings_user_asset'),
        sa.CheckConstraint('amount > 0', name='ck_holdings_amount_positive'),
        sa.CheckConstraint('purchase_price > 0', name='ck_holdings_purchase_price_positive'),
    )
    op.create_index('ix_holdings_user_id', 'holdings', ['user_id'])
    op.create_index('ix_holdings_asset_id', 'holdings', ['asset_id'])

    op.create_table(
        'price_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('asset_id', sa.Uuid(), sa.ForeignKey('assets.id', ondelete='CASCADE'), nullable=False),
        sa.Column('price', sa.Numeric(precision=24, scale=8), nullable=False),
        sa.Column('market_cap', sa.Numeric(precision=24, scale=2), nullable=True),
        sa.Column('volume_24h', sa.Numeric(precision=24, scale=2), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_price_history_asset_id', 'price_history', ['asset_id'])
    op.create_index('ix_price_history_recorded_at', 'price_history', ['recorded_at'])
    op.create_index('ix_price_history_asset_recorded', 'price_history', ['asset_id', 'recorded_at'])


def downgrade() -> None:
    op.drop_table('price_history')
    op.drop_table('holdings')
    op.drop_table('assets')
    op.drop_table('users')
