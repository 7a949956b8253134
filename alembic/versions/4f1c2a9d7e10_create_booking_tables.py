"""create booking tables

Revision ID: 4f1c2a9d7e10
Revises:
Create Date: 2025-09-03 22:15:57.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '4f1c2a9d7e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()')),
    ]


def upgrade() -> None:
    """Upgrade schema."""

    # 1. organizations
    op.create_table(
        'organizations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(100), nullable=False, unique=True),
        sa.Column('timezone', sa.String(50), server_default='UTC'),
        *_timestamps(),
    )

    # 2. simpro_connections
    op.create_table(
        'simpro_connections',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('build_name', sa.String(100), nullable=True),
        sa.Column('domain', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('access_token_encrypted', sa.LargeBinary, nullable=True),
        sa.Column('refresh_token_encrypted', sa.LargeBinary, nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('refresh_token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # 3. booking_forms
    op.create_table(
        'booking_forms',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('slug', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('form_config', sa.JSON, nullable=True),
        *_timestamps(),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_booking_forms_organization_id', 'booking_forms', ['organization_id'])

    # 4. organization_employees
    op.create_table(
        'organization_employees',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('simpro_employee_id', sa.Integer, nullable=False),
        sa.Column('simpro_employee_name', sa.String(200), nullable=False),
        sa.Column('simpro_employee_email', sa.String(200), nullable=True),
        sa.Column('is_enabled', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('display_on_schedule', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sync_error', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'simpro_employee_id', name='uq_org_employees_simpro_id'),
    )
    op.create_index('ix_organization_employees_organization_id', 'organization_employees', ['organization_id'])

    # 5. bookings
    op.create_table(
        'bookings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('organization_id', sa.String(36), sa.ForeignKey('organizations.id', ondelete='CASCADE'),
                  nullable=False),
        sa.Column('form_id', sa.String(36), sa.ForeignKey('booking_forms.id', ondelete='SET NULL'), nullable=True),
        sa.Column('service_id', sa.String(100), nullable=False),
        sa.Column('service_name', sa.String(200), nullable=False),
        sa.Column('service_description', sa.Text, nullable=True),
        sa.Column('service_duration', sa.Integer, nullable=False),
        sa.Column('service_price', sa.Numeric(10, 2), server_default='0'),
        sa.Column('customer_name', sa.String(200), nullable=False),
        sa.Column('customer_email', sa.String(200), nullable=True),
        sa.Column('customer_phone', sa.String(50), nullable=True),
        sa.Column('customer_company', sa.String(200), nullable=True),
        sa.Column('booking_start_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('booking_end_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('customer_timezone', sa.String(50), server_default='UTC'),
        sa.Column('form_responses', sa.JSON, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('confirmation_code', sa.String(20), nullable=False),
        sa.Column('booking_source', sa.String(20), server_default='web'),
        sa.Column('idempotency_key', sa.String(100), nullable=True),
        sa.Column('internal_notes', sa.Text, nullable=True),
        *_timestamps(),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('cancellation_reason', sa.Text, nullable=True),
        sa.UniqueConstraint('organization_id', 'idempotency_key', name='uq_bookings_org_idempotency_key'),
    )
    op.create_index('ix_bookings_organization_id', 'bookings', ['organization_id'])
    op.create_index('ix_bookings_booking_start_at', 'bookings', ['booking_start_at'])

    # 6. booking_employees
    op.create_table(
        'booking_employees',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('booking_id', sa.String(36), sa.ForeignKey('bookings.id', ondelete='CASCADE'),
                  nullable=False, unique=True),
        sa.Column('organization_employee_id', sa.String(36),
                  sa.ForeignKey('organization_employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('simpro_job_id', sa.Integer, nullable=True),
        sa.Column('simpro_customer_id', sa.Integer, nullable=True),
        sa.Column('simpro_schedule_id', sa.Integer, nullable=True),
        sa.Column('simpro_site_id', sa.Integer, nullable=True),
        sa.Column('simpro_status', sa.String(20), server_default='pending'),
        sa.Column('simpro_sync_error', sa.Text, nullable=True),
        sa.Column('last_simpro_sync', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_booking_employees_organization_employee_id', 'booking_employees',
                    ['organization_employee_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('booking_employees')
    op.drop_table('bookings')
    op.drop_table('organization_employees')
    op.drop_table('booking_forms')
    op.drop_table('simpro_connections')
    op.drop_table('organizations')
