"""Service catalogue and support tickets

Revision ID: 002
Revises: 001
Create Date: 2026-10-18

WHAT: Adds services (per-agency price templates) and support_tickets.

HOW: Documents copy title and price from a service when an item is
added, so nothing references services.id.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '002'
down_revision: Union[str, None] = '001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the services and support_tickets tables."""
    op.execute(
        "CREATE TYPE serviceunittype AS ENUM ('hours', 'days', 'project', 'item')"
    )
    op.execute("CREATE TYPE ticketpriority AS ENUM ('normal', 'high')")

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agency_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('default_unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column(
            'unit_type',
            sa.Enum('hours', 'days', 'project', 'item', name='serviceunittype', create_type=False),
            nullable=False,
        ),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['agency_id'], ['agencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('default_unit_price >= 0', name='ck_services_price_non_negative'),
    )
    op.create_index('ix_services_id', 'services', ['id'])
    op.create_index('ix_services_agency_id', 'services', ['agency_id'])
    op.create_index('ix_services_is_active', 'services', ['is_active'])

    op.create_table(
        'support_tickets',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agency_id', sa.Integer(), nullable=False),
        sa.Column('subject', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column(
            'priority',
            sa.Enum('normal', 'high', name='ticketpriority', create_type=False),
            nullable=False,
            server_default='normal',
        ),
        sa.Column('plan', sa.String(length=50), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['agency_id'], ['agencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_support_tickets_id', 'support_tickets', ['id'])
    op.create_index('ix_support_tickets_agency_id', 'support_tickets', ['agency_id'])


def downgrade() -> None:
    """Drop the services and support_tickets tables."""
    op.drop_table('support_tickets')
    op.drop_table('services')
    op.execute("DROP TYPE IF EXISTS ticketpriority")
    op.execute("DROP TYPE IF EXISTS serviceunittype")
