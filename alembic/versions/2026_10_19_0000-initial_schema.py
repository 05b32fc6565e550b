"""initial schema

Revision ID: 2026_10_19_0000
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB


# revision identifiers, used by Alembic.
revision: str = '2026_10_19_0000'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(JSONB(), 'postgresql')


def upgrade() -> None:
    """Create credit ledger and version store tables."""

    # ========================================================================
    # Create credit_accounts table
    # ========================================================================
    op.create_table(
        'credit_accounts',
        sa.Column('user_id', sa.String(255), primary_key=True),
        sa.Column('plan', sa.String(50), nullable=False, server_default='free'),
        sa.Column('balance', sa.Integer(), nullable=True),
        sa.Column('total_earned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('reset_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('balance IS NULL OR balance >= 0', name='ck_credit_balance_non_negative'),
        sa.CheckConstraint('total_earned >= 0', name='ck_credit_total_earned_non_negative'),
        sa.CheckConstraint('total_spent >= 0', name='ck_credit_total_spent_non_negative'),
    )
    op.create_index('idx_credit_accounts_reset_date', 'credit_accounts', ['reset_date'])

    # ========================================================================
    # Create credit_transactions table
    # ========================================================================
    op.create_table(
        'credit_transactions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('balance_before', sa.Integer(), nullable=True),
        sa.Column('balance_after', sa.Integer(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('amount >= 0', name='ck_credit_transaction_amount_non_negative'),
        sa.CheckConstraint(
            "kind IN ('deduct', 'add', 'reset', 'replenish')",
            name='ck_credit_transaction_kind',
        ),
    )
    op.create_index(
        'idx_credit_transactions_user_created', 'credit_transactions', ['user_id', 'created_at']
    )

    # ========================================================================
    # Create design_system_versions table
    # ========================================================================
    op.create_table(
        'design_system_versions',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column(
            'parent_version_id',
            sa.Uuid(),
            sa.ForeignKey('design_system_versions.id', ondelete='RESTRICT'),
            nullable=True,
        ),
        sa.Column('artifact_id', sa.String(64), nullable=False),
        sa.Column('artifact', JSON_TYPE, nullable=False),
        sa.Column('intent', sa.Text(), nullable=False),
        sa.Column('changes', JSON_TYPE, nullable=False),
        sa.Column('credits_charged', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('user_id', 'version', name='uq_design_system_versions_user_version'),
        sa.CheckConstraint('version > 0', name='ck_design_system_version_positive'),
    )
    op.create_index(
        'idx_design_system_versions_parent', 'design_system_versions', ['parent_version_id']
    )
    op.create_index(
        'idx_design_system_versions_user_created',
        'design_system_versions',
        ['user_id', 'created_at'],
    )


def downgrade() -> None:
    """Drop all tables."""
    op.drop_index('idx_design_system_versions_user_created', table_name='design_system_versions')
    op.drop_index('idx_design_system_versions_parent', table_name='design_system_versions')
    op.drop_table('design_system_versions')
    op.drop_index('idx_credit_transactions_user_created', table_name='credit_transactions')
    op.drop_table('credit_transactions')
    op.drop_index('idx_credit_accounts_reset_date', table_name='credit_accounts')
    op.drop_table('credit_accounts')
