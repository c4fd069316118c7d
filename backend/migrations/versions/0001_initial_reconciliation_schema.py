"""Initial schema: shifts, transactions, catalog items, daily stats

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19

This migration adds:
1. shifts, with a partial unique index allowing one open shift per staff member
2. transactions (soft delete, audit trail, GCash reconciliation status)
3. catalog_items (legacy Debit/Credit categories replayed by the shift audit)
4. stats_daily (per-day aggregates, keyed by business-timezone date)
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ==========================================================================
    # 1. SHIFTS
    # ==========================================================================
    op.create_table('shifts',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('staff_email', sa.String(length=255), nullable=False),
        sa.Column('shift_period', sa.String(length=32), nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('pc_rental_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('services_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expenses_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('system_total_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cash_cents', sa.Integer(), nullable=True),
        sa.Column('total_gcash_cents', sa.Integer(), nullable=True),
        sa.Column('total_ar_cents', sa.Integer(), nullable=True),
        sa.Column('close_summary', sa.JSON(), nullable=True),
        sa.Column('denominations', sa.JSON(), nullable=True),
        sa.Column('last_consolidated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_shifts_staff_email'), ['staff_email'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_start_time'), ['start_time'], unique=False)
        batch_op.create_index(batch_op.f('ix_shifts_end_time'), ['end_time'], unique=False)
        batch_op.create_index('ix_shifts_start_id', ['start_time', 'id'], unique=False)
        batch_op.create_index(
            'uq_shifts_one_open_per_staff',
            ['staff_email'],
            unique=True,
            sqlite_where=sa.text('end_time IS NULL'),
            postgresql_where=sa.text('end_time IS NULL'),
        )

    # ==========================================================================
    # 2. TRANSACTIONS
    # ==========================================================================
    op.create_table('transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('shift_id', sa.Integer(), nullable=True),
        sa.Column('item', sa.String(length=128), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=True),
        sa.Column('unit_price_cents', sa.Integer(), nullable=True),
        sa.Column('total_cents', sa.Integer(), nullable=True),
        sa.Column('payment_method', sa.String(length=16), nullable=True),
        sa.Column('expense_type', sa.String(length=64), nullable=True),
        sa.Column('financial_category', sa.String(length=32), nullable=True),
        sa.Column('customer_id', sa.String(length=64), nullable=True),
        sa.Column('customer_name', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('reconciliation_status', sa.String(length=16), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('voided', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=True),
        sa.Column('edited_by', sa.String(length=255), nullable=True),
        sa.Column('edit_reason', sa.String(length=255), nullable=True),
        sa.Column('edited_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_by', sa.String(length=255), nullable=True),
        sa.Column('delete_reason', sa.String(length=255), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=False),
        sa.ForeignKeyConstraint(['shift_id'], ['shifts.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_transactions_shift_id'), ['shift_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_financial_category'), ['financial_category'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_customer_id'), ['customer_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_is_deleted'), ['is_deleted'], unique=False)
        batch_op.create_index(batch_op.f('ix_transactions_timestamp'), ['timestamp'], unique=False)
        batch_op.create_index('ix_transactions_timestamp_id', ['timestamp', 'id'], unique=False)
        batch_op.create_index('ix_transactions_shift_timestamp', ['shift_id', 'timestamp'], unique=False)

    # ==========================================================================
    # 3. CATALOG ITEMS
    # ==========================================================================
    op.create_table('catalog_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('category', sa.String(length=16), nullable=False, server_default='Debit'),
        sa.Column('financial_category', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_catalog_items_name'),
        sqlite_autoincrement=True,
    )
    with op.batch_alter_table('catalog_items', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_catalog_items_is_active'), ['is_active'], unique=False)

    # ==========================================================================
    # 4. DAILY STATS
    # ==========================================================================
    op.create_table('stats_daily',
        sa.Column('date', sa.String(length=10), nullable=False),
        sa.Column('sales_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expenses_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('tx_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('date'),
    )


def downgrade():
    op.drop_table('stats_daily')

    with op.batch_alter_table('catalog_items', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_catalog_items_is_active'))
    op.drop_table('catalog_items')

    with op.batch_alter_table('transactions', schema=None) as batch_op:
        batch_op.drop_index('ix_transactions_shift_timestamp')
        batch_op.drop_index('ix_transactions_timestamp_id')
        batch_op.drop_index(batch_op.f('ix_transactions_timestamp'))
        batch_op.drop_index(batch_op.f('ix_transactions_is_deleted'))
        batch_op.drop_index(batch_op.f('ix_transactions_customer_id'))
        batch_op.drop_index(batch_op.f('ix_transactions_financial_category'))
        batch_op.drop_index(batch_op.f('ix_transactions_shift_id'))
    op.drop_table('transactions')

    with op.batch_alter_table('shifts', schema=None) as batch_op:
        batch_op.drop_index('uq_shifts_one_open_per_staff')
        batch_op.drop_index('ix_shifts_start_id')
        batch_op.drop_index(batch_op.f('ix_shifts_end_time'))
        batch_op.drop_index(batch_op.f('ix_shifts_start_time'))
        batch_op.drop_index(batch_op.f('ix_shifts_staff_email'))
    op.drop_table('shifts')
