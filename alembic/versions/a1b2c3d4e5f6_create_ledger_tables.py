"""create accounts, transactions and group_operators tables

Revision ID: a1b2c3d4e5f6
Revises:
Create Date: 2026-10-18 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1b2c3d4e5f6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.String(64), nullable=False),
        sa.Column('chat_title', sa.String(255), nullable=True),
        sa.Column('reserve_balance', sa.Numeric(18, 6), server_default='0', nullable=False),
        sa.Column('service_rate', sa.Numeric(10, 6), server_default='0', nullable=False),
        sa.Column('pending_amount', sa.Numeric(18, 6), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('chat_id', name='accounts_chat_id_key'),
    )

    op.create_table(
        'transactions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('account_id', sa.Integer(), sa.ForeignKey('accounts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('amount', sa.Numeric(18, 6), nullable=False),
        sa.Column('reserve_after', sa.Numeric(18, 6), server_default='0', nullable=False),
        sa.Column('pending_amount_after', sa.Numeric(18, 6), server_default='0', nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index(
        'ix_transactions_account_created',
        'transactions',
        ['account_id', sa.text('created_at DESC')],
    )

    op.create_table(
        'group_operators',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('chat_id', sa.String(64), nullable=False),
        sa.Column('user_id', sa.String(64), nullable=False),
        sa.Column('user_name', sa.String(255), nullable=True),
        sa.Column('assigned_by', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.UniqueConstraint('chat_id', 'user_id', name='uq_group_operators_chat_user'),
    )


def downgrade() -> None:
    op.drop_table('group_operators')
    op.drop_index('ix_transactions_account_created', 'transactions')
    op.drop_table('transactions')
    op.drop_table('accounts')
