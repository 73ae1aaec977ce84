"""create jobcard tables: users, employees, work orders, entries, estimates

Revision ID: a1c3e5f7b901
Revises:
Create Date: 2025-06-02 09:12:41.508113

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'a1c3e5f7b901'
down_revision = None
branch_labels = None
depends_on = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps(with_updated=True):
    cols = [sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)]
    if with_updated:
        cols.append(sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False))
    return cols


def _money(name, nullable=False, zero_default=False):
    kw = {"server_default": sa.text("0")} if zero_default else {}
    return sa.Column(name, sa.Numeric(12, 2), nullable=nullable, **kw)


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('permissions', JSON, server_default=sa.text("'[]'"), nullable=False),
        sa.Column('is_superuser', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.execute("CREATE UNIQUE INDEX IF NOT EXISTS ux_users_lower_email ON users (lower(email));")

    op.create_table(
        'employees',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('employee_code', sa.String(length=32), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=32), nullable=True),
        _money('minimum_wage', zero_default=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('TRUE'), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('FALSE'), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('employee_code'),
    )
    op.execute("CREATE INDEX IF NOT EXISTS ix_employees_lower_email ON employees (lower(email));")

    op.create_table(
        'work_orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=64), nullable=False),
        sa.Column('client_code', sa.String(length=64), nullable=False),
        sa.Column('client_name', sa.String(length=255), nullable=False),
        sa.Column('client_phone', sa.String(length=32), nullable=True),
        sa.Column('client_email', sa.String(length=255), nullable=True),
        sa.Column('received_by', sa.String(length=255), nullable=True),
        sa.Column('order_date', sa.Date(), nullable=True),
        sa.Column('order_time', sa.String(length=8), nullable=True),
        sa.Column('job_start_date', sa.Date(), nullable=True),
        sa.Column('date_promised', sa.Date(), nullable=True),
        sa.Column('date_delivered', sa.Date(), nullable=True),
        sa.Column('priority', sa.String(length=32), nullable=True),
        sa.Column('job_type', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=20), server_default=sa.text("'pending'"), nullable=False),
        sa.Column('checked_by', sa.Integer(), nullable=True),
        sa.Column('checked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_by', sa.Integer(), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_by', sa.Integer(), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_on_time', sa.Boolean(), nullable=True),
        sa.Column('remarks', sa.Text(), nullable=True),
        _money('total_labour_hours', zero_default=True),
        _money('total_labour_cost', zero_default=True),
        _money('total_material_cost', zero_default=True),
        _money('grand_total', zero_default=True),
        sa.Column('has_estimate', sa.Boolean(), server_default=sa.text('FALSE'), nullable=False),
        _money('estimate_amount', nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('FALSE'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['checked_by'], ['users.id']),
        sa.ForeignKeyConstraint(['completed_by'], ['users.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.ForeignKeyConstraint(['delivered_by'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_number'),
    )
    op.create_index('ix_work_orders_status', 'work_orders', ['status'], unique=False)
    op.create_index('ix_work_orders_created_at', 'work_orders', ['created_at'], unique=False)
    op.execute("CREATE INDEX IF NOT EXISTS ix_work_orders_lower_client_name ON work_orders (lower(client_name));")

    op.create_table(
        'labour_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('employee_id', sa.Integer(), nullable=False),
        sa.Column('entry_date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        _money('hours'),
        _money('cost_per_hour'),
        _money('total_cost'),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_labour_entries_work_order_id', 'labour_entries', ['work_order_id'], unique=False)
    op.create_index('ix_labour_entries_employee_id', 'labour_entries', ['employee_id'], unique=False)

    op.create_table(
        'material_entries',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(length=255), nullable=False),
        _money('quantity'),
        sa.Column('unit', sa.String(length=32), nullable=False),
        _money('unit_price'),
        _money('amount'),
        sa.Column('supplier', sa.String(length=255), nullable=True),
        *_timestamps(with_updated=False),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_material_entries_work_order_id', 'material_entries', ['work_order_id'], unique=False)

    op.create_table(
        'estimates',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('work_order_id', sa.Integer(), nullable=False),
        sa.Column('estimate_number', sa.String(length=32), nullable=False),
        sa.Column('estimate_date', sa.Date(), nullable=False),
        sa.Column('valid_until', sa.Date(), nullable=False),
        sa.Column('estimated_labour', JSON, server_default=sa.text("'[]'"), nullable=False),
        sa.Column('estimated_materials', JSON, server_default=sa.text("'[]'"), nullable=False),
        sa.Column('additional_charges', JSON, server_default=sa.text("'[]'"), nullable=False),
        sa.Column('discounts', JSON, server_default=sa.text("'[]'"), nullable=False),
        sa.Column('tax_percentage', sa.Numeric(5, 2), server_default=sa.text('0'), nullable=False),
        _money('tax_amount', zero_default=True),
        _money('subtotal'),
        _money('grand_total'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('terms_and_conditions', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=16), server_default=sa.text("'draft'"), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('is_deleted', sa.Boolean(), server_default=sa.text('FALSE'), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['work_order_id'], ['work_orders.id']),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ux_estimates_estimate_number', 'estimates', ['estimate_number'], unique=True)
    op.create_index('ix_estimates_status', 'estimates', ['status'], unique=False)
    op.create_index('ix_estimates_estimate_date', 'estimates', ['estimate_date'], unique=False)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_estimates_work_order_active
        ON estimates (work_order_id)
        WHERE (is_deleted = false);
    """)


def downgrade():
    op.execute("DROP INDEX IF EXISTS ux_estimates_work_order_active;")
    op.drop_index('ix_estimates_estimate_date', table_name='estimates')
    op.drop_index('ix_estimates_status', table_name='estimates')
    op.drop_index('ux_estimates_estimate_number', table_name='estimates')
    op.drop_table('estimates')

    op.drop_index('ix_material_entries_work_order_id', table_name='material_entries')
    op.drop_table('material_entries')

    op.drop_index('ix_labour_entries_employee_id', table_name='labour_entries')
    op.drop_index('ix_labour_entries_work_order_id', table_name='labour_entries')
    op.drop_table('labour_entries')

    op.execute("DROP INDEX IF EXISTS ix_work_orders_lower_client_name;")
    op.drop_index('ix_work_orders_created_at', table_name='work_orders')
    op.drop_index('ix_work_orders_status', table_name='work_orders')
    op.drop_table('work_orders')

    op.execute("DROP INDEX IF EXISTS ix_employees_lower_email;")
    op.drop_table('employees')

    op.execute("DROP INDEX IF EXISTS ux_users_lower_email;")
    op.drop_table('users')
