"""Baseline: professionals, calendar, appointments and reminders.

Revision ID: 0001_baseline
Revises:
Create Date: 2026-10-18

Creates:
- professionals, clients, services
- working_hours, holidays, reschedule_policies
- appointments, reschedule_history
- reminder_jobs, reminder_configs

Datetimes are stored as naive UTC (see slotbook.db.types.UTCDateTime).
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_baseline'
down_revision = None
branch_labels = None
depends_on = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), 'postgresql')


def _professional_fk() -> sa.Column:
    return sa.Column(
        'professional_id',
        sa.Uuid(),
        sa.ForeignKey('professionals.id', ondelete='CASCADE'),
        nullable=False,
    )


def upgrade() -> None:
    # ==========================================================================
    # professionals / clients / services
    # ==========================================================================
    op.create_table(
        'professionals',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('timezone', sa.String(50), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('buffer_minutes', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'clients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _professional_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_clients_professional', 'clients', ['professional_id'])

    op.create_table(
        'services',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _professional_fk(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_services_professional', 'services', ['professional_id', 'is_active'])

    # ==========================================================================
    # calendar
    # ==========================================================================
    op.create_table(
        'working_hours',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _professional_fk(),
        sa.Column('day_of_week', sa.Integer(), nullable=False),
        sa.Column('is_open', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        sa.Column('break_start', sa.Time(), nullable=True),
        sa.Column('break_end', sa.Time(), nullable=True),
        sa.UniqueConstraint('professional_id', 'day_of_week', name='uq_working_hours_day'),
        sa.CheckConstraint('day_of_week >= 0 AND day_of_week <= 6', name='ck_valid_day_of_week'),
    )

    op.create_table(
        'holidays',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _professional_fk(),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('open_time', sa.Time(), nullable=True),
        sa.Column('close_time', sa.Time(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('professional_id', 'date', name='uq_holiday_date'),
    )
    op.create_index('idx_holidays_professional_date', 'holidays', ['professional_id', 'date'])

    op.create_table(
        'reschedule_policies',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'professional_id',
            sa.Uuid(),
            sa.ForeignKey('professionals.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('allow_client_reschedule', sa.Boolean(), nullable=False),
        sa.Column('minimum_notice_hours', sa.Integer(), nullable=False),
        sa.Column('warning_notice_hours', sa.Integer(), nullable=False),
        sa.Column('max_reschedules', sa.Integer(), nullable=False),
        sa.Column('allow_same_day', sa.Boolean(), nullable=False),
        sa.Column('auto_confirm', sa.Boolean(), nullable=False),
        sa.Column('notify_client', sa.Boolean(), nullable=False),
        sa.Column('blackout_ranges', JSON_TYPE, nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )

    # ==========================================================================
    # appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        _professional_fk(),
        sa.Column('client_id', sa.Uuid(), sa.ForeignKey('clients.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.Uuid(), sa.ForeignKey('services.id', ondelete='SET NULL'), nullable=True),
        sa.Column('team_member_id', sa.Uuid(), nullable=True),
        sa.Column('service_name', sa.String(255), nullable=False),
        sa.Column('service_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('duration_minutes', sa.Integer(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('scheduled_end', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('payment_status', sa.String(20), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_appointments_professional_start', 'appointments', ['professional_id', 'scheduled_for'])
    op.create_index('idx_appointments_client', 'appointments', ['client_id', 'scheduled_for'])
    op.create_index('idx_appointments_status', 'appointments', ['professional_id', 'status'])

    op.create_table(
        'reschedule_history',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'appointment_id',
            sa.Uuid(),
            sa.ForeignKey('appointments.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('original_scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('requested_scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('initiated_by', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_reschedule_history_appointment', 'reschedule_history', ['appointment_id', 'created_at'])

    # ==========================================================================
    # reminders
    # ==========================================================================
    op.create_table(
        'reminder_jobs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'appointment_id',
            sa.Uuid(),
            sa.ForeignKey('appointments.id', ondelete='CASCADE'),
            nullable=False,
        ),
        _professional_fk(),
        sa.Column('channel', sa.String(20), nullable=False),
        sa.Column('offset_hours', sa.Integer(), nullable=False),
        sa.Column('fire_at', sa.DateTime(), nullable=False),
        sa.Column('next_attempt_at', sa.DateTime(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('attempts', sa.Integer(), server_default=sa.text('0'), nullable=False),
        sa.Column('max_attempts', sa.Integer(), server_default=sa.text('3'), nullable=False),
        sa.Column('claimed_until', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('custom_template', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('idx_reminder_jobs_due', 'reminder_jobs', ['status', 'next_attempt_at'])
    op.create_index('idx_reminder_jobs_appointment', 'reminder_jobs', ['appointment_id', 'status'])

    op.create_table(
        'reminder_configs',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column(
            'professional_id',
            sa.Uuid(),
            sa.ForeignKey('professionals.id', ondelete='CASCADE'),
            nullable=False,
            unique=True,
        ),
        sa.Column('enabled', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('hours_before', JSON_TYPE, nullable=False),
        sa.Column('channels', JSON_TYPE, nullable=False),
        sa.Column('message_template', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('reminder_configs')
    op.drop_index('idx_reminder_jobs_appointment', table_name='reminder_jobs')
    op.drop_index('idx_reminder_jobs_due', table_name='reminder_jobs')
    op.drop_table('reminder_jobs')
    op.drop_index('idx_reschedule_history_appointment', table_name='reschedule_history')
    op.drop_table('reschedule_history')
    op.drop_index('idx_appointments_status', table_name='appointments')
    op.drop_index('idx_appointments_client', table_name='appointments')
    op.drop_index('idx_appointments_professional_start', table_name='appointments')
    op.drop_table('appointments')
    op.drop_table('reschedule_policies')
    op.drop_index('idx_holidays_professional_date', table_name='holidays')
    op.drop_table('holidays')
    op.drop_table('working_hours')
    op.drop_index('idx_services_professional', table_name='services')
    op.drop_table('services')
    op.drop_index('idx_clients_professional', table_name='clients')
    op.drop_table('clients')
    op.drop_table('professionals')
