# alembic/versions/001_initial.py

"""Initial schema

Revision ID: 001
Revises:
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


transaction_type = sa.Enum('SIP', 'SWP', 'STP', name='transactiontype')
frequency = sa.Enum('DAILY', 'WEEKLY', 'MONTHLY', 'QUARTERLY', 'YEARLY', name='frequency')
plan_status = sa.Enum('ACTIVE', 'PAUSED', 'CANCELLED', 'COMPLETED', name='planstatus')
execution_status = sa.Enum('SUCCESS', 'FAILED', 'SKIPPED', name='executionstatus')
ledger_entry_type = sa.Enum('CREDIT', 'DEBIT', name='ledgerentrytype')
notification_level = sa.Enum('SUCCESS', 'ERROR', 'INFO', name='notificationlevel')
job_run_status = sa.Enum('RUNNING', 'SUCCESS', 'FAILED', name='jobrunstatus')


def upgrade():
    # Create demo_account table
    op.create_table('demo_account',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('balance', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_demo_account_user_id', 'demo_account', ['user_id'], unique=True)

    # Create holding table
    op.create_table('holding',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('scheme_code', sa.Integer(), nullable=False),
        sa.Column('total_units', sa.Numeric(precision=18, scale=6), nullable=False),
        sa.Column('invested_amount', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('last_nav', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('last_nav_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'scheme_code', name='uq_holding_user_scheme'),
    )
    op.create_index('ix_holding_user_id', 'holding', ['user_id'])
    op.create_index('ix_holding_scheme_code', 'holding', ['scheme_code'])

    # Create recurring_plan table
    op.create_table('recurring_plan',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('scheme_code', sa.Integer(), nullable=False),
        sa.Column('source_scheme_code', sa.Integer(), nullable=True),
        sa.Column('transaction_type', transaction_type, nullable=False),
        sa.Column('amount', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('frequency', frequency, nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('next_due_date', sa.Date(), nullable=False),
        sa.Column('installments', sa.Integer(), nullable=True),
        sa.Column('remaining_installments', sa.Integer(), nullable=True),
        sa.Column('executed_count', sa.Integer(), nullable=False),
        sa.Column('status', plan_status, nullable=False),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_recurring_plan_user_id', 'recurring_plan', ['user_id'])
    op.create_index('ix_recurring_plan_scheme_code', 'recurring_plan', ['scheme_code'])
    op.create_index('ix_recurring_plan_due', 'recurring_plan', ['status', 'next_due_date'])

    # Create execution_record table
    op.create_table('execution_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=False),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('status', execution_status, nullable=False),
        sa.Column('amount', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('units', sa.Numeric(precision=18, scale=6), nullable=True),
        sa.Column('nav_used', sa.Numeric(precision=14, scale=4), nullable=True),
        sa.Column('balance_before', sa.Numeric(precision=16, scale=2), nullable=True),
        sa.Column('balance_after', sa.Numeric(precision=16, scale=2), nullable=True),
        sa.Column('failure_reason', sa.Text(), nullable=True),
        sa.Column('executed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['recurring_plan.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('plan_id', 'scheduled_date', name='uq_execution_plan_slot'),
    )
    op.create_index('ix_execution_record_plan_id', 'execution_record', ['plan_id'])
    op.create_index('ix_execution_record_scheduled_date', 'execution_record', ['scheduled_date'])
    op.create_index('ix_execution_record_status', 'execution_record', ['status', 'scheduled_date'])

    # Create ledger_entry table
    op.create_table('ledger_entry',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('plan_id', sa.Integer(), nullable=True),
        sa.Column('entry_type', ledger_entry_type, nullable=False),
        sa.Column('amount', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('balance_after', sa.Numeric(precision=16, scale=2), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['plan_id'], ['recurring_plan.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_ledger_entry_user_id', 'ledger_entry', ['user_id'])
    op.create_index('ix_ledger_entry_user_created', 'ledger_entry', ['user_id', 'created_at'])

    # Create fund_nav table
    op.create_table('fund_nav',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('scheme_code', sa.Integer(), nullable=False),
        sa.Column('nav_date', sa.Date(), nullable=False),
        sa.Column('nav', sa.Numeric(precision=14, scale=4), nullable=False),
        sa.Column('fetched_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_fund_nav_scheme_code', 'fund_nav', ['scheme_code'])
    op.create_index('ix_fund_nav_unique', 'fund_nav', ['scheme_code', 'nav_date'], unique=True)

    # Create notification table
    op.create_table('notification',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=200), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('level', notification_level, nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notification_user_id', 'notification', ['user_id'])

    # Create job_run_log table
    op.create_table('job_run_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_name', sa.String(length=100), nullable=False),
        sa.Column('status', job_run_status, nullable=False),
        sa.Column('triggered_by', sa.String(length=20), nullable=False),
        sa.Column('started_at', sa.DateTime(), nullable=False),
        sa.Column('finished_at', sa.DateTime(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=True),
        sa.Column('message', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_job_run_log_job_name', 'job_run_log', ['job_name'])
    op.create_index('ix_job_run_log_job_started', 'job_run_log', ['job_name', 'started_at'])


def downgrade():
    op.drop_table('job_run_log')
    op.drop_table('notification')
    op.drop_table('fund_nav')
    op.drop_table('ledger_entry')
    op.drop_table('execution_record')
    op.drop_table('recurring_plan')
    op.drop_table('holding')
    op.drop_table('demo_account')

    bind = op.get_bind()
    for enum in (
        job_run_status, notification_level, ledger_entry_type,
        execution_status, plan_status, frequency, transaction_type,
    ):
        enum.drop(bind, checkfirst=True)
