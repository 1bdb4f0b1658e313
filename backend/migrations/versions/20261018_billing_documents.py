"""Billing documents, credit/debit notes and purchase returns

Revision ID: 20261018_billing
Revises: 20261018_initial
Create Date: 2026-10-18

Creates:
1. documents, document_lines, document_payments (estimation/proforma/invoice)
2. notes, note_lines (credit and debit notes)
3. purchase_returns, purchase_return_items
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_billing'
down_revision = '20261018_initial'
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. DOCUMENTS
    # ==========================================================================
    op.create_table('documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('document_number', sa.String(length=32), nullable=False),
        sa.Column('document_type', sa.String(length=16), nullable=False),
        sa.Column('document_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('due_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=True),
        sa.Column('original_document_id', sa.Integer(), nullable=True),
        sa.Column('converted_from', sa.String(length=16), nullable=True),
        sa.Column('buyer_id', sa.Integer(), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_mobile', sa.String(length=32), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_gst', sa.String(length=32), nullable=True),
        sa.Column('customer_company', sa.String(length=255), nullable=True),
        sa.Column('customer_address', sa.Text(), nullable=True),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('place_of_supply', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Draft'),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('total_discount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('transportation_charges', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('amount_paid', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('balance_amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('payment_terms', sa.String(length=64), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('accepted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['original_document_id'], ['documents.id'], ),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_number', name='uq_documents_number'),
        sa.UniqueConstraint('original_document_id', 'document_type', name='uq_documents_conversion'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('documents', schema=None) as batch_op:
        batch_op.create_index('ix_documents_type_status', ['document_type', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_original_document_id'), ['original_document_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_buyer_id'), ['buyer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_documents_order_id'), ['order_id'], unique=False)

    op.create_table('document_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('hsn', sa.String(length=32), nullable=True),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('size', sa.String(length=16), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('discount_type', sa.String(length=16), nullable=False, server_default='percentage'),
        sa.Column('line_total', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.CheckConstraint('quantity >= 1', name='ck_document_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_lines_document_id'), ['document_id'], unique=False)

    op.create_table('document_payments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_id', sa.Integer(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('method', sa.String(length=32), nullable=True),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_document_payments_amount_positive'),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('document_payments', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_document_payments_document_id'), ['document_id'], unique=False)

    # ==========================================================================
    # 2. CREDIT / DEBIT NOTES
    # ==========================================================================
    op.create_table('notes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('note_number', sa.String(length=32), nullable=False),
        sa.Column('note_type', sa.String(length=8), nullable=False),
        sa.Column('note_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('reference_type', sa.String(length=32), nullable=False),
        sa.Column('reference_number', sa.String(length=64), nullable=False),
        sa.Column('reference_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('document_id', sa.Integer(), nullable=True),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('reason_description', sa.Text(), nullable=True),
        sa.Column('party_name', sa.String(length=255), nullable=False),
        sa.Column('party_mobile', sa.String(length=32), nullable=True),
        sa.Column('party_gst', sa.String(length=32), nullable=True),
        sa.Column('party_state', sa.String(length=64), nullable=True),
        sa.Column('party_address', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('subtotal', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('grand_total', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('is_auto_generated', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['document_id'], ['documents.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('note_number', name='uq_notes_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('notes', schema=None) as batch_op:
        batch_op.create_index('ix_notes_type_status', ['note_type', 'status'], unique=False)
        batch_op.create_index(batch_op.f('ix_notes_status'), ['status'], unique=False)
        batch_op.create_index(batch_op.f('ix_notes_reference_number'), ['reference_number'], unique=False)
        batch_op.create_index(batch_op.f('ix_notes_document_id'), ['document_id'], unique=False)

    op.create_table('note_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('note_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        sa.Column('hsn', sa.String(length=32), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('rate', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('amount', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.CheckConstraint('quantity > 0', name='ck_note_lines_quantity_positive'),
        sa.ForeignKeyConstraint(['note_id'], ['notes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('note_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_note_lines_note_id'), ['note_id'], unique=False)

    # ==========================================================================
    # 3. PURCHASE RETURNS
    # ==========================================================================
    op.create_table('purchase_returns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('purt_number', sa.String(length=32), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('pur_number', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('total_return_value', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('debit_note_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['debit_note_id'], ['notes.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purt_number', name='uq_purchase_returns_number'),
        sa.UniqueConstraint('purchase_id', name='uq_purchase_returns_purchase'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_returns', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_returns_order_id'), ['order_id'], unique=False)

    op.create_table('purchase_return_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_return_id', sa.Integer(), nullable=False),
        sa.Column('purchase_item_id', sa.Integer(), nullable=True),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('vendor_name', sa.String(length=255), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=True),
        sa.Column('original_quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('original_cost_per_unit', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('return_quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('return_reason', sa.String(length=32), nullable=False),
        sa.Column('reason_description', sa.Text(), nullable=True),
        sa.Column('return_value', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.CheckConstraint('return_quantity > 0', name='ck_purchase_return_items_quantity_positive'),
        sa.ForeignKeyConstraint(['purchase_return_id'], ['purchase_returns.id'], ),
        sa.ForeignKeyConstraint(['purchase_item_id'], ['purchase_items.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_return_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_return_items_purchase_return_id'), ['purchase_return_id'], unique=False)


def downgrade():
    for table in (
        'purchase_return_items',
        'purchase_returns',
        'note_lines',
        'notes',
        'document_payments',
        'document_lines',
        'documents',
    ):
        op.drop_table(table)
