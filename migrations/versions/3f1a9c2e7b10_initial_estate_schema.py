"""initial estate schema (organizations, estate, plucking, sales, schedule)

Revision ID: 3f1a9c2e7b10
Revises:
Create Date: 2025-11-20 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f1a9c2e7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

org_role = sa.Enum('owner', 'admin', 'manager', 'viewer', name='org_role_enum')
# same type, already created with organization_members
org_role_existing = postgresql.ENUM('owner', 'admin', 'manager', 'viewer', name='org_role_enum', create_type=False)
worker_role = sa.Enum('picker', 'supervisor', 'manager', 'quality_controller', name='worker_role_enum')
worker_status = sa.Enum('active', 'inactive', 'terminated', name='worker_status_enum')
event_type = sa.Enum('task', 'reminder', 'meeting', 'harvest', 'maintenance', name='schedule_event_type_enum')
event_status = sa.Enum('pending', 'completed', 'cancelled', name='schedule_event_status_enum')


def _org_fk():
    return sa.Column('organization_id', sa.Integer(),
                     sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=120), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )

    op.create_table(
        'organization_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', org_role, nullable=False),
        sa.Column('invited_at', sa.DateTime(), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'user_id', name='uq_org_member_user'),
    )
    op.create_index('ix_organization_members_organization_id', 'organization_members', ['organization_id'])
    op.create_index('ix_organization_members_user_id', 'organization_members', ['user_id'])

    op.create_table(
        'invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('role', org_role_existing, nullable=False),
        sa.Column('token', sa.String(length=64), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('invited_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_invitations_organization_id', 'invitations', ['organization_id'])
    op.create_index('ix_invitations_token', 'invitations', ['token'], unique=True)

    op.create_table(
        'plantations',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=False),
        sa.Column('area_hectares', sa.Numeric(10, 2), nullable=False),
        sa.Column('tea_variety', sa.String(length=100), nullable=False),
        sa.Column('number_of_plants', sa.Integer(), nullable=True),
        sa.Column('established_date', sa.Date(), nullable=True),
        sa.Column('manager_id', sa.Integer(), nullable=True),
        sa.Column('image_url', sa.String(length=1024), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_plantations_organization_id', 'plantations', ['organization_id'])

    op.create_table(
        'workers',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('employee_id', sa.String(length=50), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('role', worker_role, nullable=False),
        sa.Column('plantation_id', sa.Integer(), sa.ForeignKey('plantations.id', ondelete='SET NULL'), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=True),
        sa.Column('salary', sa.Numeric(10, 2), nullable=True),
        sa.Column('status', worker_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('organization_id', 'employee_id', name='uq_worker_org_employee_id'),
    )
    op.create_index('ix_workers_organization_id', 'workers', ['organization_id'])
    op.create_index('ix_workers_plantation_id', 'workers', ['plantation_id'])

    op.create_table(
        'daily_plucking',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('worker_id', sa.Integer(), sa.ForeignKey('workers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('is_advance', sa.Boolean(), nullable=False),
        sa.Column('kg_plucked', sa.Numeric(10, 2), nullable=False),
        sa.Column('rate_per_kg', sa.Numeric(10, 2), nullable=False),
        sa.Column('extra_work_items', sa.JSON(), nullable=True),
        sa.Column('extra_work_payment', sa.Numeric(12, 2), nullable=False),
        sa.Column('advance_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('wage_earned', sa.Numeric(14, 4), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_daily_plucking_organization_id', 'daily_plucking', ['organization_id'])
    op.create_index('ix_daily_plucking_worker_id', 'daily_plucking', ['worker_id'])
    op.create_index('ix_daily_plucking_date', 'daily_plucking', ['date'])

    op.create_table(
        'tea_sales',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('factory_name', sa.String(length=255), nullable=False),
        sa.Column('kg_delivered', sa.Numeric(10, 2), nullable=False),
        sa.Column('rate_per_kg', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_income', sa.Numeric(14, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_tea_sales_organization_id', 'tea_sales', ['organization_id'])
    op.create_index('ix_tea_sales_date', 'tea_sales', ['date'])

    op.create_table(
        'worker_bonuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('worker_id', sa.Integer(), sa.ForeignKey('workers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('month', sa.Date(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('notes', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_worker_bonuses_organization_id', 'worker_bonuses', ['organization_id'])
    op.create_index('ix_worker_bonuses_worker_id', 'worker_bonuses', ['worker_id'])
    op.create_index('ix_worker_bonuses_month', 'worker_bonuses', ['month'])

    op.create_table(
        'schedule_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        _org_fk(),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('event_date', sa.Date(), nullable=False),
        sa.Column('event_time', sa.Time(), nullable=True),
        sa.Column('event_type', event_type, nullable=False),
        sa.Column('status', event_status, nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_schedule_events_organization_id', 'schedule_events', ['organization_id'])
    op.create_index('ix_schedule_events_event_date', 'schedule_events', ['event_date'])


def downgrade() -> None:
    for table in ('schedule_events', 'worker_bonuses', 'tea_sales', 'daily_plucking',
                  'workers', 'plantations', 'invitations', 'organization_members',
                  'organizations', 'users'):
        op.drop_table(table)

    bind = op.get_bind()
    for enum in (event_status, event_type, worker_status, worker_role, org_role):
        enum.drop(bind, checkfirst=True)
