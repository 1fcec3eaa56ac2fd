"""Create marketplace tables: owners, boats, pricing, availability, bookings, payments

Revision ID: c3d9e1a7b5f2
Revises:
Create Date: 2026-10-19 10:12:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'c3d9e1a7b5f2'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps(updated: bool = True) -> list:
    columns = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now())]
    if updated:
        columns.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()))
    return columns


def upgrade() -> None:
    op.create_table(
        'owners',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('marina_name', sa.String(), nullable=False),
        sa.Column('slug', sa.String(), nullable=False, unique=True),
        sa.Column('city', sa.String(), nullable=True),
        sa.Column('state', sa.String(), nullable=True),
        sa.Column('commission_rate', sa.Numeric(5, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
    )

    op.create_table(
        'boats',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('owner_id', sa.Uuid(), sa.ForeignKey('owners.id'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('type', sa.String(), nullable=False, server_default='leisure_boat'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('length_meters', sa.Numeric(6, 2), nullable=True),
        sa.Column('has_crew', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
    )
    op.create_index('idx_boats_owner_type', 'boats', ['owner_id', 'type'])

    op.create_table(
        'boat_photos',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('boat_id', sa.Uuid(), sa.ForeignKey('boats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(updated=False),
    )

    op.create_table(
        'dynamic_pricing',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('boat_id', sa.Uuid(), sa.ForeignKey('boats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('pricing_type', sa.String(), nullable=False),
        sa.Column('price_modifier', sa.Numeric(6, 3), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('day_of_week', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        *_timestamps(),
        sa.CheckConstraint('price_modifier > 0', name='ck_dynamic_pricing_modifier_positive'),
        sa.CheckConstraint(
            'day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)',
            name='ck_dynamic_pricing_day_of_week',
        ),
    )
    op.create_index('idx_dynamic_pricing_boat_active', 'dynamic_pricing', ['boat_id', 'is_active'])

    op.create_table(
        'availability',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('boat_id', sa.Uuid(), sa.ForeignKey('boats.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default='false'),
        sa.Column('source', sa.String(), nullable=False, server_default='manual'),
        sa.Column('google_event_id', sa.String(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_availability_boat_date', 'availability', ['boat_id', 'date'])

    op.create_table(
        'holidays',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('is_national', sa.Boolean(), nullable=False, server_default='true'),
        sa.Column('state', sa.String(), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('idx_holidays_date', 'holidays', ['date'])

    op.create_table(
        'profiles',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False, unique=True),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('loyalty_level', sa.String(), nullable=False, server_default='bronze'),
        sa.Column('total_rentals', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )

    op.create_table(
        'bookings',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.Uuid(), nullable=False),
        sa.Column('boat_id', sa.Uuid(), sa.ForeignKey('boats.id'), nullable=False),
        sa.Column('booking_date', sa.Date(), nullable=False),
        sa.Column('passengers', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('base_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('deposit_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('check_in_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('check_out_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_bookings_user_boat_date', 'bookings', ['user_id', 'boat_id', 'booking_date'])
    op.create_index('idx_bookings_boat_date', 'bookings', ['boat_id', 'booking_date'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('booking_id', sa.Uuid(), sa.ForeignKey('bookings.id'), nullable=False),
        sa.Column('stripe_checkout_session_id', sa.String(), nullable=True),
        sa.Column('stripe_payment_intent_id', sa.String(), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('platform_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('owner_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('held_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('released_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refunded_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_payments_booking_id', 'payments', ['booking_id'])
    op.create_index('idx_payments_payment_intent', 'payments', ['stripe_payment_intent_id'])
    op.create_index('idx_payments_checkout_session', 'payments', ['stripe_checkout_session_id'])


def downgrade() -> None:
    op.drop_index('idx_payments_checkout_session', table_name='payments')
    op.drop_index('idx_payments_payment_intent', table_name='payments')
    op.drop_index('idx_payments_booking_id', table_name='payments')
    op.drop_table('payments')
    op.drop_index('idx_bookings_boat_date', table_name='bookings')
    op.drop_index('idx_bookings_user_boat_date', table_name='bookings')
    op.drop_table('bookings')
    op.drop_table('profiles')
    op.drop_index('idx_holidays_date', table_name='holidays')
    op.drop_table('holidays')
    op.drop_index('idx_availability_boat_date', table_name='availability')
    op.drop_table('availability')
    op.drop_index('idx_dynamic_pricing_boat_active', table_name='dynamic_pricing')
    op.drop_table('dynamic_pricing')
    op.drop_table('boat_photos')
    op.drop_index('idx_boats_owner_type', table_name='boats')
    op.drop_table('boats')
    op.drop_table('owners')
