"""initial garage schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete GaragePOS schema:
- users, login_tokens: till operators and bearer tokens (hashed)
- inventory_items, services: catalog
- business_sessions: one user's business day (at most one open per user)
- sales: immutable receipts with a JSON snapshot of the cart lines
- customers, vehicles: loyalty points keyed by phone, vehicle profiles
- suppliers, grns: purchasing
- expenses
- day_end_reports: persisted reconciliation, one per closed session
- settings, journal_entries
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(*, updated: bool = False):
    cols = [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]
    if updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                              server_default=sa.text('CURRENT_TIMESTAMP')))
    return cols


def upgrade():
    # ============================================================================
    # users / login_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'], unique=True)

    op.create_table(
        'login_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_login_tokens_user_id', 'login_tokens', ['user_id'])
    op.create_index('ix_login_tokens_token_hash', 'login_tokens', ['token_hash'], unique=True)
    op.create_index('ix_login_tokens_expires_at', 'login_tokens', ['expires_at'])
    op.create_index('ix_login_tokens_user_active', 'login_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # catalog
    # ============================================================================
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('part_name', sa.String(length=255), nullable=False),
        sa.Column('part_number', sa.String(length=64), nullable=True),
        sa.Column('category', sa.String(length=64), nullable=True),
        sa.Column('price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('buying_price_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('stock', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_items_part_name', 'inventory_items', ['part_name'])
    op.create_index('ix_inventory_items_part_number', 'inventory_items', ['part_number'])
    op.create_index('ix_inventory_items_category', 'inventory_items', ['category'])

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('service_name', sa.String(length=255), nullable=False),
        sa.Column('cost_cents', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # business_sessions: at most one open session per user (partial unique index)
    # ============================================================================
    op.create_table(
        'business_sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='open'),
        sa.Column('float_cash_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cash_in_hand_cents', sa.Integer(), nullable=True),
        sa.Column('invoice_counter', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_business_sessions_user_id', 'business_sessions', ['user_id'])
    op.create_index('ix_business_sessions_status', 'business_sessions', ['status'])
    op.create_index('ix_business_sessions_start_time', 'business_sessions', ['start_time'])
    op.create_index('ix_business_sessions_user_status', 'business_sessions', ['user_id', 'status'])
    op.create_index(
        'uq_business_sessions_one_open_per_user',
        'business_sessions',
        ['user_id'],
        unique=True,
        sqlite_where=sa.text("status = 'open'"),
        postgresql_where=sa.text("status = 'open'"),
    )

    # ============================================================================
    # sales: immutable receipts
    # ============================================================================
    op.create_table(
        'sales',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_no', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('vehicle_no', sa.String(length=32), nullable=False),
        sa.Column('customer_name', sa.String(length=128), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=False),
        sa.Column('mileage', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('subtotal_cents', sa.Integer(), nullable=False),
        sa.Column('discount_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('cash_received_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_cents', sa.Integer(), nullable=False),
        sa.Column('profit_cents', sa.Integer(), nullable=False),
        sa.Column('redeemed_points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('payment_method', sa.String(length=16), nullable=False),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default='0'),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.ForeignKeyConstraint(['session_id'], ['business_sessions.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', 'invoice_no', name='uq_sales_session_invoice'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_sales_session_id', 'sales', ['session_id'])
    op.create_index('ix_sales_user_id', 'sales', ['user_id'])
    op.create_index('ix_sales_vehicle_no', 'sales', ['vehicle_no'])
    op.create_index('ix_sales_customer_phone', 'sales', ['customer_phone'])
    op.create_index('ix_sales_payment_method', 'sales', ['payment_method'])
    op.create_index('ix_sales_is_paid', 'sales', ['is_paid'])
    op.create_index('ix_sales_created_at', 'sales', ['created_at'])
    op.create_index('ix_sales_business_date', 'sales', ['business_date'])
    op.create_index('ix_sales_vehicle_method_paid', 'sales', ['vehicle_no', 'payment_method', 'is_paid'])

    # ============================================================================
    # customers / vehicles
    # ============================================================================
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('vehicle_no', sa.String(length=32), nullable=True),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(updated=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone', name='uq_customers_phone'),
        sa.CheckConstraint('points >= 0', name='ck_customers_points_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_customers_phone', 'customers', ['phone'])
    op.create_index('ix_customers_vehicle_no', 'customers', ['vehicle_no'])

    op.create_table(
        'vehicles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('vehicle_no', sa.String(length=32), nullable=False),
        sa.Column('customer_phone', sa.String(length=32), nullable=True),
        sa.Column('model', sa.String(length=128), nullable=True),
        sa.Column('year', sa.String(length=8), nullable=True),
        sa.Column('engine', sa.String(length=128), nullable=True),
        sa.Column('chassis', sa.String(length=128), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=False),
        *_timestamps(updated=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('vehicle_no', name='uq_vehicles_vehicle_no'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_vehicles_vehicle_no', 'vehicles', ['vehicle_no'])
    op.create_index('ix_vehicles_customer_phone', 'vehicles', ['customer_phone'])

    # ============================================================================
    # purchasing
    # ============================================================================
    op.create_table(
        'suppliers',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_suppliers_name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_suppliers_name', 'suppliers', ['name'])

    # supplier_id is a soft link; the supplier name is snapshotted
    op.create_table(
        'grns',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=True),
        sa.Column('supplier', sa.String(length=128), nullable=False),
        sa.Column('reference', sa.String(length=128), nullable=True),
        sa.Column('items', sa.JSON(), nullable=False),
        sa.Column('total_cents', sa.Integer(), nullable=False),
        sa.Column('paid_cents', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('business_date', sa.Date(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_grns_supplier_id', 'grns', ['supplier_id'])
    op.create_index('ix_grns_user_id', 'grns', ['user_id'])
    op.create_index('ix_grns_business_date', 'grns', ['business_date'])
    op.create_index('ix_grns_created_at', 'grns', ['created_at'])
    op.create_index('ix_grns_supplier_created', 'grns', ['supplier_id', 'created_at'])

    # ============================================================================
    # expenses
    # ============================================================================
    op.create_table(
        'expenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('category', sa.String(length=64), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=True),
        sa.Column('amount_cents', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('amount_cents > 0', name='ck_expenses_amount_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_expenses_business_date', 'expenses', ['business_date'])
    op.create_index('ix_expenses_user_id', 'expenses', ['user_id'])
    op.create_index('ix_expenses_created_at', 'expenses', ['created_at'])
    op.create_index('ix_expenses_date_user', 'expenses', ['business_date', 'user_id'])

    # ============================================================================
    # day_end_reports: one per closed session, never updated
    # ============================================================================
    op.create_table(
        'day_end_reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('float_cents', sa.Integer(), nullable=False),
        sa.Column('cash_sales_cents', sa.Integer(), nullable=False),
        sa.Column('credit_sales_cents', sa.Integer(), nullable=False),
        sa.Column('total_sales_cents', sa.Integer(), nullable=False),
        sa.Column('gross_profit_cents', sa.Integer(), nullable=False),
        sa.Column('expenses_cents', sa.Integer(), nullable=False),
        sa.Column('cash_in_hand_cents', sa.Integer(), nullable=False),
        sa.Column('expected_cents', sa.Integer(), nullable=False),
        sa.Column('variance_cents', sa.Integer(), nullable=False),
        sa.Column('net_profit_cents', sa.Integer(), nullable=False),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('expense_scope', sa.String(length=16), nullable=False, server_default='day'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['session_id'], ['business_sessions.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('session_id', name='uq_day_end_reports_session'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_day_end_reports_user_id', 'day_end_reports', ['user_id'])
    op.create_index('ix_day_end_reports_business_date', 'day_end_reports', ['business_date'])

    # ============================================================================
    # settings / journal_entries
    # ============================================================================
    op.create_table(
        'settings',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('value', sa.JSON(), nullable=True),
        sa.Column('updated_by_user_id', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['updated_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key', name='uq_settings_key'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_settings_key', 'settings', ['key'])

    op.create_table(
        'journal_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('kind', sa.String(length=32), nullable=False),
        sa.Column('business_date', sa.Date(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_journal_entries_kind', 'journal_entries', ['kind'])
    op.create_index('ix_journal_entries_business_date', 'journal_entries', ['business_date'])
    op.create_index('ix_journal_entries_created_at', 'journal_entries', ['created_at'])


def downgrade():
    for table in (
        'journal_entries',
        'settings',
        'day_end_reports',
        'expenses',
        'grns',
        'suppliers',
        'vehicles',
        'customers',
        'sales',
        'business_sessions',
        'services',
        'inventory_items',
        'login_tokens',
        'users',
    ):
        op.drop_table(table)
