"""create_booking_tables

Revision ID: 4b1f0c2a9d3e
Revises:
Create Date: 2026-10-19 09:12:44.318207

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4b1f0c2a9d3e'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

project_type = sa.Enum(
    'LANDING', 'BUSINESS', 'ECOMMERCE', 'WEBAPP', 'CUSTOM', 'SERVICE_ONLY',
    name='projecttype',
)
project_status = sa.Enum(
    'PENDING', 'APPROVED', 'DECLINED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED',
    name='projectstatus',
)
payment_method = sa.Enum('STRIPE', 'PAYPAL', 'AFTERPAY', 'CREDIT', name='paymentmethod')
payment_status = sa.Enum('PENDING', 'COMPLETED', 'FAILED', 'REFUNDED', name='paymentstatus')


def upgrade() -> None:
    """Create clients, projects and payments."""
    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=False),
        sa.Column('project_type', project_type, nullable=False),
        sa.Column('specifications', sa.Text(), nullable=True),
        sa.Column('website_type', sa.String(length=100), nullable=True),
        sa.Column('primary_color', sa.String(length=7), nullable=True),
        sa.Column('secondary_color', sa.String(length=7), nullable=True),
        sa.Column('accent_color', sa.String(length=7), nullable=True),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('booking_month', sa.String(length=50), nullable=True),
        sa.Column('status', project_status, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_projects_client_id', 'projects', ['client_id'])
    op.create_index('ix_projects_booking_month', 'projects', ['booking_month'])
    op.create_index('ix_projects_status', 'projects', ['status'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('project_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_method', payment_method, nullable=False),
        sa.Column('payment_status', payment_status, nullable=False),
        sa.Column('gateway_reference', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['project_id'], ['projects.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('gateway_reference'),
    )
    op.create_index('ix_payments_project_id', 'payments', ['project_id'])
    op.create_index('ix_payments_payment_status', 'payments', ['payment_status'])


def downgrade() -> None:
    """Drop booking tables and their enum types."""
    op.drop_index('ix_payments_payment_status', table_name='payments')
    op.drop_index('ix_payments_project_id', table_name='payments')
    op.drop_table('payments')
    op.drop_index('ix_projects_status', table_name='projects')
    op.drop_index('ix_projects_booking_month', table_name='projects')
    op.drop_index('ix_projects_client_id', table_name='projects')
    op.drop_table('projects')
    op.drop_table('clients')

    bind = op.get_bind()
    for enum_type in (payment_status, payment_method, project_status, project_type):
        enum_type.drop(bind, checkfirst=True)
