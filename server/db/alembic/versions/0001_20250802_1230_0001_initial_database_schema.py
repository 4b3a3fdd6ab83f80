"""Initial database schema

Revision ID: 0001
Revises:
Create Date: 2025-08-02 12:30:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Upgrade database schema."""
    # Create users table
    op.create_table('users',
        sa.Column('id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=320), nullable=True),
        sa.Column('first_name', sa.String(length=255), nullable=True),
        sa.Column('last_name', sa.String(length=255), nullable=True),
        sa.Column('profile_image_url', sa.String(length=1024), nullable=True),
        sa.Column('is_admin', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    # Create tours table
    op.create_table('tours',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('max_group_size', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price >= 0', name='ck_tour_price_non_negative'),
        sa.CheckConstraint('duration > 0', name='ck_tour_duration_positive'),
        sa.CheckConstraint("type IN ('day', 'night', 'custom')", name='ck_tour_type_valid'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tours_name'), 'tours', ['name'], unique=False)
    op.create_index(op.f('ix_tours_is_active'), 'tours', ['is_active'], unique=False)

    # Create bookings table
    op.create_table('bookings',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tour_id', sa.String(length=36), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=320), nullable=False),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('booking_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('number_of_guests', sa.Integer(), nullable=False),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('channel', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('payment_status', sa.String(length=20), nullable=False),
        sa.Column('provider_payment_id', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('number_of_guests >= 1', name='ck_booking_guests_positive'),
        sa.CheckConstraint('total_amount >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('length(customer_name) > 0', name='ck_booking_customer_name_not_empty'),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'cancelled', 'completed')",
            name='ck_booking_status_valid'
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'failed', 'refunded')",
            name='ck_booking_payment_status_valid'
        ),
        sa.CheckConstraint(
            "NOT (status = 'confirmed' AND payment_status = 'pending')",
            name='ck_booking_confirmed_not_unpaid'
        ),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_bookings_tour_id'), 'bookings', ['tour_id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_email'), 'bookings', ['customer_email'], unique=False)
    op.create_index(op.f('ix_bookings_booking_date'), 'bookings', ['booking_date'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_payment_status'), 'bookings', ['payment_status'], unique=False)
    op.create_index(op.f('ix_bookings_provider_payment_id'), 'bookings', ['provider_payment_id'], unique=False)
    op.create_index(op.f('ix_bookings_created_at'), 'bookings', ['created_at'], unique=False)

    # Create daily_capacity table
    op.create_table('daily_capacity',
        sa.Column('tour_date', sa.Date(), nullable=False),
        sa.Column('guests_booked', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('guests_booked >= 0', name='ck_daily_capacity_non_negative'),
        sa.PrimaryKeyConstraint('tour_date')
    )

    # Create custom_tours table
    op.create_table('custom_tours',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=320), nullable=False),
        sa.Column('customer_phone', sa.String(length=64), nullable=True),
        sa.Column('tour_type', sa.String(length=16), nullable=False),
        sa.Column('activities', sa.JSON(), nullable=False),
        sa.Column('group_size', sa.Integer(), nullable=False),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('estimated_price', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('group_size >= 1', name='ck_custom_tour_group_size_positive'),
        sa.CheckConstraint("tour_type IN ('day', 'night', 'custom')", name='ck_custom_tour_type_valid'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_custom_tours_created_at'), 'custom_tours', ['created_at'], unique=False)

    # Create settings table (single row keyed 'default')
    op.create_table('settings',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('clover_app_id', sa.String(length=255), nullable=True),
        sa.Column('clover_api_token', sa.String(length=512), nullable=True),
        sa.Column('clover_environment', sa.String(length=16), nullable=False),
        sa.Column('business_name', sa.String(length=255), nullable=False),
        sa.Column('contact_email', sa.String(length=320), nullable=True),
        sa.Column('phone_number', sa.String(length=64), nullable=True),
        sa.Column('tax_rate', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('default_tour_duration', sa.Integer(), nullable=False),
        sa.Column('max_group_size', sa.Integer(), nullable=False),
        sa.Column('advance_booking_days', sa.Integer(), nullable=False),
        sa.Column('daily_guest_capacity', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('tax_rate >= 0 AND tax_rate <= 100', name='ck_settings_tax_rate_range'),
        sa.CheckConstraint(
            "clover_environment IN ('sandbox', 'production')",
            name='ck_settings_environment_valid'
        ),
        sa.CheckConstraint('max_group_size >= 1', name='ck_settings_group_size_positive'),
        sa.CheckConstraint('daily_guest_capacity >= 1', name='ck_settings_daily_capacity_positive'),
        sa.PrimaryKeyConstraint('id')
    )

    # Create idempotency_records table
    op.create_table('idempotency_records',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('request_body_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(idempotency_key) > 0', name='ck_idempotency_key_not_empty'),
        sa.CheckConstraint('length(request_body_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint('response_status_code >= 100', name='ck_idempotency_status_code_valid'),
        sa.CheckConstraint('response_status_code <= 599', name='ck_idempotency_status_code_max'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'method', name='uq_idempotency_key_method')
    )
    op.create_index(
        op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False
    )
    op.create_index(op.f('ix_idempotency_records_method'), 'idempotency_records', ['method'], unique=False)
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_index(op.f('ix_idempotency_records_expires_at'), table_name='idempotency_records')
    op.drop_index(op.f('ix_idempotency_records_method'), table_name='idempotency_records')
    op.drop_index(op.f('ix_idempotency_records_idempotency_key'), table_name='idempotency_records')
    op.drop_table('idempotency_records')

    op.drop_table('settings')

    op.drop_index(op.f('ix_custom_tours_created_at'), table_name='custom_tours')
    op.drop_table('custom_tours')

    op.drop_table('daily_capacity')

    op.drop_index(op.f('ix_bookings_created_at'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_provider_payment_id'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_payment_status'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_status'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_booking_date'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_customer_email'), table_name='bookings')
    op.drop_index(op.f('ix_bookings_tour_id'), table_name='bookings')
    op.drop_table('bookings')

    op.drop_index(op.f('ix_tours_is_active'), table_name='tours')
    op.drop_index(op.f('ix_tours_name'), table_name='tours')
    op.drop_table('tours')

    op.drop_table('users')
