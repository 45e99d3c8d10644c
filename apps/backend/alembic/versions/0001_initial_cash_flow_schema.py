"""
Initial cash-flow schema: owners, accounts, recurring rules, transactions

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-19 10:00:00
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.text('(CURRENT_TIMESTAMP)')),
    ]


def upgrade() -> None:
    # On SQLite the enum becomes a CHECK-constrained VARCHAR
    txn_type = sa.Enum('income', 'expense', name='txn_type')

    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('email', sa.String(length=320), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        *_timestamps(),
    )

    op.create_table(
        'userprofile',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False, unique=True),
        sa.Column('display_name', sa.String(length=100), nullable=True),
        sa.Column('base_currency', sa.String(length=3), nullable=True),
        sa.Column('timezone', sa.String(length=64), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'account',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('balance', sa.Numeric(18, 2), nullable=False, server_default='0'),
        sa.Column('is_primary', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        *_timestamps(),
        sa.UniqueConstraint('user_id', 'name', name='uq_account_name'),
    )

    op.create_table(
        'recurringrule',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('day_of_month', sa.Integer(), nullable=False),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('account.id', ondelete='SET NULL'), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('1')),
        sa.Column('total_installments', sa.Integer(), nullable=True),
        sa.Column('current_installment', sa.Integer(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_recurring_amount_positive'),
        sa.CheckConstraint('day_of_month BETWEEN 1 AND 31', name='ck_recurring_day_of_month'),
        sa.CheckConstraint('current_installment >= 1', name='ck_recurring_current_installment'),
        sa.CheckConstraint(
            'total_installments IS NULL OR total_installments >= 1',
            name='ck_recurring_total_installments',
        ),
        sa.CheckConstraint('end_date IS NULL OR end_date >= start_date', name='ck_recurring_date_window'),
    )
    op.create_index('ix_recurring_user_active', 'recurringrule', ['user_id', 'is_active'])

    op.create_table(
        'transaction',
        sa.Column('id', sa.Integer(), primary_key=True, nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('type', txn_type, nullable=False),
        sa.Column('description', sa.String(length=200), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('occurred_at', sa.Date(), nullable=False),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('payment_method', sa.String(length=30), nullable=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('account.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_paid', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('recurring_rule_id', sa.Integer(), sa.ForeignKey('recurringrule.id'), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('amount > 0', name='ck_txn_amount_positive'),
    )
    op.create_index('ix_txn_user_date', 'transaction', ['user_id', 'occurred_at'])
    op.create_index('ix_txn_user_due_date', 'transaction', ['user_id', 'due_date'])
    op.create_index('ix_txn_recurring_rule', 'transaction', ['recurring_rule_id'])


def downgrade() -> None:
    op.drop_index('ix_txn_recurring_rule', table_name='transaction')
    op.drop_index('ix_txn_user_due_date', table_name='transaction')
    op.drop_index('ix_txn_user_date', table_name='transaction')
    op.drop_table('transaction')
    op.drop_index('ix_recurring_user_active', table_name='recurringrule')
    op.drop_table('recurringrule')
    op.drop_table('account')
    op.drop_table('userprofile')
    op.drop_table('user')
