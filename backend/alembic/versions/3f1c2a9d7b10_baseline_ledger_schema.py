"""Baseline ledger schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'providers',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('start_of_service', sa.Date(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_providers_id', 'providers', ['id'])

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider_id', sa.Integer(), sa.ForeignKey('providers.id'), nullable=False),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('recurrence_id', sa.String(36), nullable=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('time', sa.Time(), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('modality', sa.String(30), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('value', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('session_done', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('no_show', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_bookings_id', 'bookings', ['id'])
    op.create_index('idx_bookings_recurrence', 'bookings', ['recurrence_id'])
    op.create_index('idx_bookings_date_status', 'bookings', ['date', 'status'])
    op.create_index('idx_bookings_provider_date', 'bookings', ['provider_id', 'date'])

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('provider_id', sa.Integer(), sa.ForeignKey('providers.id'), nullable=False),
        sa.Column('client_id', sa.Integer(), sa.ForeignKey('clients.id'), nullable=False),
        sa.Column('booking_id', sa.Integer(), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('value', sa.Numeric(10, 2), nullable=False),
        sa.Column('override_share', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('payment_done', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('share_done', sa.Boolean(), server_default='false', nullable=False),
        sa.Column('invoice_status', sa.String(30), nullable=False),
        sa.Column('occurrence_date_1', sa.Date(), nullable=True),
        sa.Column('occurrence_date_2', sa.Date(), nullable=True),
        sa.Column('occurrence_date_3', sa.Date(), nullable=True),
        sa.Column('occurrence_date_4', sa.Date(), nullable=True),
        sa.Column('occurrence_date_5', sa.Date(), nullable=True),
        sa.Column('occurrence_date_6', sa.Date(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_sessions_id', 'sessions', ['id'])
    op.create_index('idx_sessions_booking', 'sessions', ['booking_id'])
    op.create_index('idx_sessions_flags', 'sessions', ['payment_done', 'share_done'])
    op.create_index('idx_sessions_provider', 'sessions', ['provider_id'])

    op.create_table(
        'manual_transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('kind', sa.String(10), nullable=False),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('description', sa.String(255), nullable=False),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('ix_manual_transactions_id', 'manual_transactions', ['id'])
    op.create_index('idx_manual_transactions_date_kind', 'manual_transactions', ['date', 'kind'])


def downgrade() -> None:
    op.drop_table('manual_transactions')
    op.drop_table('sessions')
    op.drop_table('bookings')
    op.drop_table('clients')
    op.drop_table('providers')
