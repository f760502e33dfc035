"""initial back office schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete back office schema:
- organizations, departments: master data kept in JSON blobs
- roles, windows, role_windows: window-based access control
- users, session_tokens: accounts and hashed bearer tokens
- raw_materials, products: stock and bill of materials
- orders, order_items, raw_material_usage: order workflow
- work_orders, finished_goods, delivery_orders, delivery_order_items
- document_sequences: atomic document number counters
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column('created', sa.JSON(), nullable=True),
        sa.Column('updated', sa.JSON(), nullable=True),
        sa.Column('deleted', sa.JSON(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
    ]


def _blob_table(name):
    op.create_table(
        name,
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(f'ix_{name}_deleted_at', name, ['deleted_at'])


def upgrade():
    # ============================================================================
    # Master data
    # ============================================================================
    _blob_table('organizations')

    op.create_table(
        'departments',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('organization_id', sa.String(length=32), nullable=True),
        sa.Column('data', sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_departments_organization_id', 'departments', ['organization_id'])
    op.create_index('ix_departments_deleted_at', 'departments', ['deleted_at'])

    _blob_table('raw_materials')
    _blob_table('products')

    # ============================================================================
    # Access control
    # ============================================================================
    op.create_table(
        'roles',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_roles_name', 'roles', ['name'])
    op.create_index('ix_roles_deleted_at', 'roles', ['deleted_at'])

    op.create_table(
        'windows',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('access', sa.String(length=32), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('data', sa.JSON(), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_windows_access', 'windows', ['access'])
    op.create_index('ix_windows_deleted_at', 'windows', ['deleted_at'])

    # (role_id, window_id) is not unique
    op.create_table(
        'role_windows',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('role_id', sa.String(length=32), nullable=False),
        sa.Column('window_id', sa.String(length=32), nullable=False),
        sa.Column('is_edit', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('granted_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.ForeignKeyConstraint(['window_id'], ['windows.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_role_windows_role_id', 'role_windows', ['role_id'])
    op.create_index('ix_role_windows_window_id', 'role_windows', ['window_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('employee_id', sa.String(length=100), nullable=True),
        sa.Column('role_id', sa.String(length=32), nullable=True),
        sa.Column('department_id', sa.String(length=32), nullable=True),
        sa.Column('organization_id', sa.String(length=32), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('receive_stock_notification', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.ForeignKeyConstraint(['department_id'], ['departments.id'], ),
        sa.ForeignKeyConstraint(['organization_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role_id', 'users', ['role_id'])
    op.create_index('ix_users_department_id', 'users', ['department_id'])
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])
    op.create_index('ix_users_receive_stock_notification', 'users', ['receive_stock_notification'])
    op.create_index('ix_users_deleted_at', 'users', ['deleted_at'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=32), nullable=False),
        sa.Column('token_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('last_used_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(length=45), nullable=True),
        sa.Column('user_agent', sa.String(length=512), nullable=True),
        sa.Column('is_revoked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('revoked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('revoked_reason', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)

    # ============================================================================
    # Orders
    # ============================================================================
    op.create_table(
        'orders',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('delivery_address', sa.Text(), nullable=True),
        sa.Column('finishing', sa.String(length=255), nullable=True),
        sa.Column('thickness', sa.String(length=64), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='draft'),
        sa.Column('confirmed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_deleted_at', 'orders', ['deleted_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_order_items_order_id', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product_id', 'order_items', ['product_id'])

    op.create_table(
        'raw_material_usage',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('order_item_id', sa.String(length=32), nullable=True),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('raw_material_id', sa.String(length=32), nullable=False),
        sa.Column('quantity_used', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['order_item_id'], ['order_items.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['raw_material_id'], ['raw_materials.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_raw_material_usage_order_id', 'raw_material_usage', ['order_id'])
    op.create_index('ix_raw_material_usage_order_item_id', 'raw_material_usage', ['order_item_id'])
    op.create_index('ix_raw_material_usage_product_id', 'raw_material_usage', ['product_id'])
    op.create_index('ix_raw_material_usage_raw_material_id', 'raw_material_usage', ['raw_material_id'])

    # ============================================================================
    # Production and delivery
    # ============================================================================
    op.create_table(
        'work_orders',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number'),
    )
    op.create_index('ix_work_orders_order_id', 'work_orders', ['order_id'])
    op.create_index('ix_work_orders_status', 'work_orders', ['status'])
    op.create_index('ix_work_orders_deleted_at', 'work_orders', ['deleted_at'])

    op.create_table(
        'finished_goods',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('work_order_id', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('produced_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_finished_goods_work_order_id', 'finished_goods', ['work_order_id'])
    op.create_index('ix_finished_goods_product_id', 'finished_goods', ['product_id'])
    op.create_index('ix_finished_goods_deleted_at', 'finished_goods', ['deleted_at'])

    op.create_table(
        'delivery_orders',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('order_id', sa.String(length=32), nullable=False),
        sa.Column('work_order_id', sa.String(length=32), nullable=True),
        sa.Column('number', sa.String(length=64), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('planned_delivery_date', sa.Date(), nullable=True),
        sa.Column('shipped_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['order_id'], ['orders.id'], ),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('number'),
    )
    op.create_index('ix_delivery_orders_order_id', 'delivery_orders', ['order_id'])
    op.create_index('ix_delivery_orders_work_order_id', 'delivery_orders', ['work_order_id'])
    op.create_index('ix_delivery_orders_status', 'delivery_orders', ['status'])
    op.create_index('ix_delivery_orders_deleted_at', 'delivery_orders', ['deleted_at'])

    op.create_table(
        'delivery_order_items',
        sa.Column('id', sa.String(length=32), nullable=False),
        sa.Column('delivery_order_id', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.String(length=32), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit', sa.String(length=32), nullable=False, server_default='pcs'),
        sa.ForeignKeyConstraint(['delivery_order_id'], ['delivery_orders.id'], ),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_delivery_order_items_delivery_order_id', 'delivery_order_items', ['delivery_order_id'])
    op.create_index('ix_delivery_order_items_product_id', 'delivery_order_items', ['product_id'])

    # ============================================================================
    # document_sequences: one counter row per (document type, period)
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('document_type', sa.String(length=32), nullable=False),
        sa.Column('period', sa.String(length=16), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('document_type', 'period', name='uq_doc_sequences_type_period'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_document_sequences_document_type', 'document_sequences', ['document_type'])


def downgrade():
    for table in (
        'document_sequences',
        'delivery_order_items',
        'delivery_orders',
        'finished_goods',
        'work_orders',
        'raw_material_usage',
        'order_items',
        'orders',
        'session_tokens',
        'users',
        'role_windows',
        'windows',
        'roles',
        'products',
        'raw_materials',
        'departments',
        'organizations',
    ):
        op.drop_table(table)
