"""initial booking schema

Revision ID: a1f3c9d2e7b4
Revises:
Create Date: 2026-10-17 10:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = 'a1f3c9d2e7b4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""

    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    # 1. Tenants
    op.create_table(
        'businesses',
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('slug', sa.String(50), nullable=False),
        sa.Column('timezone', sa.String(80), nullable=False, server_default='UTC'),
        sa.Column('country_code', sa.String(2), nullable=False, server_default='AR'),
        sa.Column('schedule_version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('public_booking_enabled', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('block_public_on_billing_issue', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('trial_starts_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('trial_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("slug ~ '^[a-z0-9-]{3,50}$'", name='ck_businesses_slug'),
    )
    op.create_index('ix_businesses_slug', 'businesses', ['slug'], unique=True)

    # 2. Users and memberships
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(120), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'memberships',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='staff'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.UniqueConstraint('tenant_id', 'user_id', name='uq_memberships_tenant_user'),
        sa.CheckConstraint("role IN ('owner', 'manager', 'staff')", name='ck_memberships_role'),
    )
    op.create_index('ix_memberships_tenant_id', 'memberships', ['tenant_id'])

    # 3. Catalog
    op.create_table(
        'services',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('duration_min', sa.Integer(), nullable=False),
        sa.Column('buffer_before_min', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buffer_after_min', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_amount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('price_currency', sa.String(3), nullable=False, server_default='ARS'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('duration_min BETWEEN 5 AND 480', name='ck_services_duration'),
        sa.CheckConstraint('buffer_before_min BETWEEN 0 AND 240', name='ck_services_buffer_before'),
        sa.CheckConstraint('buffer_after_min BETWEEN 0 AND 240', name='ck_services_buffer_after'),
    )
    op.create_index('ix_services_tenant_id', 'services', ['tenant_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    # 4. Availability
    op.create_table(
        'availability_rules',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id'), nullable=False),
        sa.Column('staff_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('start_local', sa.String(5), nullable=False),
        sa.Column('end_local', sa.String(5), nullable=False),
        sa.Column('slot_step_min', sa.Integer(), nullable=False, server_default='15'),
        sa.Column('valid_from', sa.Date(), nullable=False),
        sa.Column('valid_to', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_rules_day_of_week'),
        sa.CheckConstraint('slot_step_min BETWEEN 5 AND 60', name='ck_rules_slot_step'),
        sa.CheckConstraint('start_local < end_local', name='ck_rules_window'),
    )
    op.create_index('ix_availability_rules_tenant_id', 'availability_rules', ['tenant_id'])

    op.create_table(
        'availability_exceptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id'), nullable=False),
        sa.Column('staff_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('exception_date', sa.Date(), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('start_local', sa.String(5), nullable=True),
        sa.Column('end_local', sa.String(5), nullable=True),
        sa.Column('reason', sa.String(200), nullable=True),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.CheckConstraint('priority BETWEEN 1 AND 1000', name='ck_exceptions_priority'),
        sa.CheckConstraint(
            "kind IN ('closed_full_day', 'closed_partial', 'open_special', 'manual_block')",
            name='ck_exceptions_kind'
        ),
    )
    op.create_index('ix_availability_exceptions_tenant_id', 'availability_exceptions', ['tenant_id'])
    op.create_index('ix_availability_exceptions_exception_date', 'availability_exceptions', ['exception_date'])

    # 5. Appointments
    op.create_table(
        'appointments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id'), nullable=False),
        sa.Column('staff_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('service_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('services.id'), nullable=False),
        sa.Column('customer_name', sa.String(120), nullable=False),
        sa.Column('customer_phone', sa.String(32), nullable=False),
        sa.Column('customer_email', sa.String(255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('scheduled_start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='confirmed'),
        sa.Column('source', sa.String(20), nullable=False, server_default='public'),
        sa.Column('idempotency_key', sa.String(200), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('canceled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('tenant_id', 'idempotency_key', name='uq_appointments_idempotency'),
        sa.CheckConstraint("status IN ('confirmed', 'canceled', 'no_show')", name='ck_appointments_status'),
        sa.CheckConstraint('start_at < end_at', name='ck_appointments_interval'),
    )
    op.create_index(
        'ix_appointments_lane_interval', 'appointments',
        ['tenant_id', 'staff_user_id', 'start_at', 'end_at']
    )

    # Confirmed footprints on one lane never overlap; unassigned bookings share the zero-UUID lane
    op.execute("""
        ALTER TABLE appointments
        ADD CONSTRAINT ex_appointments_no_overlap
        EXCLUDE USING gist (
            tenant_id WITH =,
            COALESCE(staff_user_id, '00000000-0000-0000-0000-000000000000'::uuid) WITH =,
            tstzrange(start_at, end_at, '[)') WITH &&
        )
        WHERE (status = 'confirmed' AND deleted_at IS NULL)
    """)

    # 6. Billing and notifications
    op.create_table(
        'subscriptions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id'), nullable=False),
        sa.Column('provider', sa.String(40), nullable=False, server_default='lemon_squeezy'),
        sa.Column('status', sa.String(20), nullable=False, server_default='trialing'),
        sa.Column('plan_code', sa.String(40), nullable=False, server_default='monthly_v1'),
        sa.Column('price_usd_cents', sa.Integer(), nullable=False, server_default='1500'),
        sa.Column('current_period_start', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_period_end', sa.DateTime(timezone=True), nullable=True),
        sa.Column('grace_ends_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancel_at_period_end', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )
    op.create_index('ix_subscriptions_tenant_id', 'subscriptions', ['tenant_id'])

    op.create_table(
        'business_whatsapp_settings',
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('businesses.tenant_id'), primary_key=True),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('phone_number_id', sa.String(120), nullable=True),
        sa.Column('api_token', sa.String(500), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('business_whatsapp_settings')
    op.drop_table('subscriptions')
    op.execute("ALTER TABLE appointments DROP CONSTRAINT IF EXISTS ex_appointments_no_overlap")
    op.drop_table('appointments')
    op.drop_table('availability_exceptions')
    op.drop_table('availability_rules')
    op.drop_table('services')
    op.drop_table('memberships')
    op.drop_table('users')
    op.drop_table('businesses')
