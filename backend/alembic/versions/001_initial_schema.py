"""Initial billing schema

Revision ID: 001
Revises:
Create Date: 2026-10-17

WHAT: Creates agencies, clients, invoices, invoice_items, payments,
proposals and proposal_items.

WHY: Every billing row is scoped by agency. The agency row carries the
invoice counter and the monthly usage ledger, which are only ever
changed by a single atomic UPDATE.

HOW: invoices.proposal_id has no foreign key; proposals point at their
invoice through converted_to_invoice_id, which keeps the two tables
free of a reference cycle.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def upgrade() -> None:
    """Create the billing tables and enum types."""
    op.execute("CREATE TYPE invoicestatus AS ENUM ('draft', 'sent', 'void')")
    op.execute(
        "CREATE TYPE paymentmethod AS ENUM ('cash', 'bank_transfer', 'card', 'other')"
    )
    op.execute(
        "CREATE TYPE proposalstatus AS ENUM ('draft', 'sent', 'approved', 'rejected')"
    )

    op.create_table(
        'agencies',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False,
                  comment='Auth provider subject owning this agency'),
        sa.Column('agency_name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('default_tax_rate', sa.Numeric(5, 4), nullable=False, server_default='0'),
        sa.Column('subscription_plan', sa.String(length=50), nullable=True),
        sa.Column('invoice_counter', sa.Integer(), nullable=False, server_default='0',
                  comment='Monotonic invoice sequence; only changed by atomic increment'),
        sa.Column('usage_period', sa.String(length=7), nullable=True),
        sa.Column('usage_count', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_agencies_id', 'agencies', ['id'])
    op.create_index('ix_agencies_user_id', 'agencies', ['user_id'], unique=True)

    op.create_table(
        'clients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agency_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('company', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['agency_id'], ['agencies.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_clients_id', 'clients', ['id'])
    op.create_index('ix_clients_agency_id', 'clients', ['agency_id'])

    op.create_table(
        'invoices',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agency_id', sa.Integer(), nullable=False),
        sa.Column('invoice_number', sa.String(length=50), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column('proposal_id', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('draft', 'sent', 'void', name='invoicestatus', create_type=False),
            nullable=False,
            server_default='draft',
        ),
        sa.Column('currency', sa.String(length=3), nullable=False, server_default='USD'),
        sa.Column('tax_rate', sa.Numeric(5, 4), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('pdf_url', sa.Text(), nullable=True),
        sa.Column('public_token', sa.String(length=64), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['agency_id'], ['agencies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('agency_id', 'invoice_number', name='uq_invoices_agency_number'),
        sa.UniqueConstraint('public_token'),
    )
    op.create_index('ix_invoices_id', 'invoices', ['id'])
    op.create_index('ix_invoices_agency_id', 'invoices', ['agency_id'])
    op.create_index('ix_invoices_invoice_number', 'invoices', ['invoice_number'])
    op.create_index('ix_invoices_client_id', 'invoices', ['client_id'])
    op.create_index('ix_invoices_proposal_id', 'invoices', ['proposal_id'])
    op.create_index('ix_invoices_status', 'invoices', ['status'])

    op.create_table(
        'invoice_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_invoice_items_id', 'invoice_items', ['id'])
    op.create_index('ix_invoice_items_invoice_id', 'invoice_items', ['invoice_id'])

    op.create_table(
        'payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('payment_date', sa.Date(), nullable=False),
        sa.Column(
            'method',
            sa.Enum('cash', 'bank_transfer', 'card', 'other', name='paymentmethod', create_type=False),
            nullable=False,
            server_default='other',
        ),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['invoice_id'], ['invoices.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount > 0', name='ck_payments_amount_positive'),
    )
    op.create_index('ix_payments_id', 'payments', ['id'])
    op.create_index('ix_payments_invoice_id', 'payments', ['invoice_id'])
    op.create_index('ix_payments_payment_date', 'payments', ['payment_date'])

    op.create_table(
        'proposals',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('agency_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('client_id', sa.Integer(), nullable=True),
        sa.Column(
            'status',
            sa.Enum('draft', 'sent', 'approved', 'rejected', name='proposalstatus', create_type=False),
            nullable=False,
            server_default='draft',
        ),
        sa.Column('currency', sa.String(length=3), nullable=True),
        sa.Column('tax_rate', sa.Numeric(5, 4), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('public_token', sa.String(length=64), nullable=False),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('converted_to_invoice_id', sa.Integer(), nullable=True,
                  comment='Invoice created from this proposal (set once)'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['agency_id'], ['agencies.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['client_id'], ['clients.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['converted_to_invoice_id'], ['invoices.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('public_token'),
        sa.UniqueConstraint('converted_to_invoice_id'),
    )
    op.create_index('ix_proposals_id', 'proposals', ['id'])
    op.create_index('ix_proposals_agency_id', 'proposals', ['agency_id'])
    op.create_index('ix_proposals_client_id', 'proposals', ['client_id'])
    op.create_index('ix_proposals_status', 'proposals', ['status'])

    op.create_table(
        'proposal_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('proposal_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('quantity', sa.Numeric(12, 2), nullable=False, server_default='1'),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['proposal_id'], ['proposals.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_proposal_items_id', 'proposal_items', ['id'])
    op.create_index('ix_proposal_items_proposal_id', 'proposal_items', ['proposal_id'])


def downgrade() -> None:
    """Drop the billing tables and enum types."""
    op.drop_table('proposal_items')
    op.drop_table('proposals')
    op.drop_table('payments')
    op.drop_table('invoice_items')
    op.drop_table('invoices')
    op.drop_table('clients')
    op.drop_table('agencies')
    op.execute("DROP TYPE IF EXISTS proposalstatus")
    op.execute("DROP TYPE IF EXISTS paymentmethod")
    op.execute("DROP TYPE IF EXISTS invoicestatus")
