"""Initial schema: counters, orders, purchasing, production, store ledger

Revision ID: 20261018_initial
Revises:
Create Date: 2026-10-18

Creates:
1. counters (named document number sequences)
2. buyers, products, orders, order_lines, order_line_sizes
3. purchases, purchase_products, purchase_items
4. productions, production_stage_events
5. store_entries, store_entry_items, store_logs, store_log_items
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '20261018_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
    ]


def upgrade():
    # ==========================================================================
    # 1. COUNTERS
    # ==========================================================================
    op.create_table('counters',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.CheckConstraint('value >= 0', name='ck_counters_value_non_negative'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', name='uq_counters_key'),
        sqlite_autoincrement=True
    )

    # ==========================================================================
    # 2. BUYERS, PRODUCTS, ORDERS
    # ==========================================================================
    op.create_table('buyers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=16), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('mobile', sa.String(length=32), nullable=False),
        sa.Column('gst', sa.String(length=32), nullable=True),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_order_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_buyers_code'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('buyers', schema=None) as batch_op:
        batch_op.create_index('ix_buyers_mobile', ['mobile'], unique=False)

    op.create_table('products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('name_key', sa.String(length=255), nullable=False),
        sa.Column('hsn', sa.String(length=32), nullable=True),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_quantity_ordered', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_ordered_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name_key', name='uq_products_name_key'),
        sqlite_autoincrement=True
    )

    op.create_table('orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('po_number', sa.String(length=32), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('buyer_id', sa.Integer(), nullable=False),
        sa.Column('buyer_name', sa.String(length=255), nullable=False),
        sa.Column('buyer_code', sa.String(length=16), nullable=False),
        sa.Column('buyer_mobile', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Pending Purchase'),
        sa.Column('total_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['buyer_id'], ['buyers.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number', name='uq_orders_order_number'),
        sa.UniqueConstraint('po_number', name='uq_orders_po_number'),
        sa.UniqueConstraint('order_type', 'serial_no', name='uq_orders_type_serial'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('orders', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_orders_order_type'), ['order_type'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_buyer_id'), ['buyer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_orders_status'), ['status'], unique=False)
        batch_op.create_index('ix_orders_status_created', ['status', 'created_at'], unique=False)

    op.create_table('order_lines',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('style', sa.String(length=128), nullable=True),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('fabric_type', sa.String(length=128), nullable=True),
        sa.Column('total_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('order_lines', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_order_lines_order_id'), ['order_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_order_lines_product_id'), ['product_id'], unique=False)

    op.create_table('order_line_sizes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('line_id', sa.Integer(), nullable=False),
        sa.Column('size', sa.String(length=16), nullable=False),
        sa.Column('qty', sa.Integer(), nullable=False),
        sa.CheckConstraint('qty >= 1', name='ck_order_line_sizes_qty_positive'),
        sa.ForeignKeyConstraint(['line_id'], ['order_lines.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('order_line_sizes', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_order_line_sizes_line_id'), ['line_id'], unique=False)

    # ==========================================================================
    # 3. PURCHASING
    # ==========================================================================
    op.create_table('purchases',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('pur_number', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('buyer_code', sa.String(length=16), nullable=True),
        sa.Column('buyer_name', sa.String(length=255), nullable=True),
        sa.Column('purchase_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('total_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_fabric_cost', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('total_trims_cost', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('total_machine_cost', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('grand_total_cost', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('pur_number', name='uq_purchases_pur_number'),
        sa.UniqueConstraint('order_id', name='uq_purchases_order'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchases', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchases_status'), ['status'], unique=False)
        batch_op.create_index('ix_purchases_status_type', ['status', 'order_type'], unique=False)

    op.create_table('purchase_products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('fabric_type', sa.String(length=128), nullable=True),
        sa.Column('color', sa.String(length=64), nullable=True),
        sa.Column('size', sa.String(length=16), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_products', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_products_purchase_id'), ['purchase_id'], unique=False)

    op.create_table('purchase_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('vendor_name', sa.String(length=255), nullable=True),
        sa.Column('vendor_code', sa.String(length=64), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=14, scale=3), nullable=False),
        sa.Column('cost_per_unit', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.Column('total_cost', sa.Numeric(precision=14, scale=2), nullable=False, server_default='0'),
        sa.CheckConstraint('quantity > 0', name='ck_purchase_items_quantity_positive'),
        sa.CheckConstraint('cost_per_unit >= 0', name='ck_purchase_items_cost_non_negative'),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('purchase_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_purchase_items_purchase_id'), ['purchase_id'], unique=False)

    # ==========================================================================
    # 4. PRODUCTION
    # ==========================================================================
    op.create_table('productions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('production_number', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('purchase_id', sa.Integer(), nullable=True),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('order_type', sa.String(length=16), nullable=False),
        sa.Column('buyer_code', sa.String(length=16), nullable=True),
        sa.Column('buyer_name', sa.String(length=255), nullable=True),
        sa.Column('total_qty', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='Pending Production'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', name='uq_productions_order'),
        sa.UniqueConstraint('production_number', name='uq_productions_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('productions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_productions_purchase_id'), ['purchase_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_productions_status'), ['status'], unique=False)

    op.create_table('production_stage_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('production_id', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['production_id'], ['productions.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('production_stage_events', schema=None) as batch_op:
        batch_op.create_index('ix_production_events_production_time', ['production_id', 'occurred_at'], unique=False)

    # ==========================================================================
    # 5. STORE LEDGER
    # ==========================================================================
    op.create_table('store_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=True),
        sa.Column('store_number', sa.String(length=32), nullable=True),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('pur_number', sa.String(length=32), nullable=True),
        sa.Column('buyer_name', sa.String(length=255), nullable=True),
        sa.Column('store_entry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Pending'),
        sa.Column('total_invoice_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('total_store_in_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('total_shortage', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('total_surplus', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_movement_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id'], ),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('purchase_id', name='uq_store_entries_purchase'),
        sa.UniqueConstraint('store_number', name='uq_store_entries_store_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_entries', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_entries_order_id'), ['order_id'], unique=False)
        batch_op.create_index('ix_store_entries_status_date', ['status', 'store_entry_date'], unique=False)

    op.create_table('store_entry_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_entry_id', sa.Integer(), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=False, server_default='fabric'),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('supplier_name', sa.String(length=255), nullable=True),
        sa.Column('supplier_code', sa.String(length=64), nullable=True),
        sa.Column('invoice_no', sa.String(length=64), nullable=True),
        sa.Column('invoice_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('hsn', sa.String(length=32), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=False, server_default='mtr'),
        sa.Column('purchase_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('invoice_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('store_in_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('shortage', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('surplus', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.CheckConstraint('store_in_qty >= 0', name='ck_store_entry_items_store_in_non_negative'),
        sa.CheckConstraint('invoice_qty >= 0', name='ck_store_entry_items_invoice_non_negative'),
        sa.ForeignKeyConstraint(['store_entry_id'], ['store_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_entry_id', 'item_name', name='uq_store_entry_items_entry_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_entry_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_entry_items_store_entry_id'), ['store_entry_id'], unique=False)

    op.create_table('store_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('serial_no', sa.Integer(), nullable=False),
        sa.Column('log_number', sa.String(length=32), nullable=False),
        sa.Column('store_entry_id', sa.Integer(), nullable=False),
        sa.Column('order_id', sa.Integer(), nullable=True),
        sa.Column('purchase_id', sa.Integer(), nullable=True),
        sa.Column('store_number', sa.String(length=32), nullable=True),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('pur_number', sa.String(length=32), nullable=True),
        sa.Column('log_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('person_name', sa.String(length=255), nullable=True),
        sa.Column('person_role', sa.String(length=64), nullable=True),
        sa.Column('department', sa.String(length=64), nullable=True),
        sa.Column('login_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('logout_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('product_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='Out'),
        sa.Column('is_opening', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('total_taken_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('total_returned_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('total_in_hand_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('remarks', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['store_entry_id'], ['store_entries.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('log_number', name='uq_store_logs_log_number'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_logs_order_id'), ['order_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_logs_purchase_id'), ['purchase_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_logs_status'), ['status'], unique=False)
        batch_op.create_index('ix_store_logs_entry_date', ['store_entry_id', 'log_date'], unique=False)

    op.create_table('store_log_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('store_log_id', sa.Integer(), nullable=False),
        sa.Column('store_entry_id', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('item_type', sa.String(length=16), nullable=True),
        sa.Column('unit', sa.String(length=16), nullable=True),
        sa.Column('taken_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('returned_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('in_hand_qty', sa.Numeric(precision=14, scale=3), nullable=False, server_default='0'),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.CheckConstraint('taken_qty >= 0', name='ck_store_log_items_taken_non_negative'),
        sa.CheckConstraint('returned_qty >= 0', name='ck_store_log_items_returned_non_negative'),
        sa.ForeignKeyConstraint(['store_log_id'], ['store_logs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('store_log_id', 'item_name', name='uq_store_log_items_log_name'),
        sqlite_autoincrement=True
    )
    with op.batch_alter_table('store_log_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_store_log_items_store_log_id'), ['store_log_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_store_log_items_store_entry_id'), ['store_entry_id'], unique=False)


def downgrade():
    for table in (
        'store_log_items',
        'store_logs',
        'store_entry_items',
        'store_entries',
        'production_stage_events',
        'productions',
        'purchase_items',
        'purchase_products',
        'purchases',
        'order_line_sizes',
        'order_lines',
        'orders',
        'products',
        'buyers',
        'counters',
    ):
        op.drop_table(table)
