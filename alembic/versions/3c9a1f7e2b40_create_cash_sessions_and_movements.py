"""create_cash_sessions_and_movements

Revision ID: 3c9a1f7e2b40
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '3c9a1f7e2b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _money(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.Numeric(12, 2), nullable=True)
    return sa.Column(name, sa.Numeric(12, 2), nullable=False, server_default='0.00')


def upgrade() -> None:
    op.create_table(
        'cash_sessions',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('company_id', sa.String(64), nullable=False),
        sa.Column('terminal_id', sa.String(32), nullable=False, server_default='01'),
        sa.Column('status', sa.String(20), nullable=False, server_default='aberto'),
        sa.Column('opened_by', sa.String(64), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('closed_by', sa.String(64), nullable=True),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('opening_balance', sa.Numeric(12, 2), nullable=False),
        _money('total_dinheiro'),
        _money('total_debito'),
        _money('total_credito'),
        _money('total_pix'),
        _money('total_voucher'),
        _money('total_outros'),
        _money('total_vendas'),
        sa.Column('sales_count', sa.Integer(), nullable=False, server_default='0'),
        _money('total_sangria'),
        _money('total_suprimento'),
        _money('counted_dinheiro', nullable=True),
        _money('counted_debito', nullable=True),
        _money('counted_credito', nullable=True),
        _money('counted_pix', nullable=True),
        _money('closing_balance', nullable=True),
        _money('difference', nullable=True),
        sa.Column('notes', sa.String(1000), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_cash_sessions_company_id'), 'cash_sessions', ['company_id'], unique=False)
    op.create_index(op.f('ix_cash_sessions_status'), 'cash_sessions', ['status'], unique=False)

    # Only one row with status='aberto' may exist per (company_id, terminal_id)
    op.create_index(
        'uq_cash_sessions_one_open_per_terminal',
        'cash_sessions',
        ['company_id', 'terminal_id'],
        unique=True,
        postgresql_where=sa.text("status = 'aberto'"),
        sqlite_where=sa.text("status = 'aberto'"),
    )

    op.create_table(
        'cash_movements',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('company_id', sa.String(64), nullable=False),
        sa.Column('session_id', sa.String(36), nullable=False),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('description', sa.String(255), nullable=True),
        sa.Column('performed_by', sa.String(64), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['session_id'], ['cash_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_cash_movements_company_id'), 'cash_movements', ['company_id'], unique=False)
    op.create_index(op.f('ix_cash_movements_session_id'), 'cash_movements', ['session_id'], unique=False)
    op.create_index(op.f('ix_cash_movements_type'), 'cash_movements', ['type'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_cash_movements_type'), table_name='cash_movements')
    op.drop_index(op.f('ix_cash_movements_session_id'), table_name='cash_movements')
    op.drop_index(op.f('ix_cash_movements_company_id'), table_name='cash_movements')
    op.drop_table('cash_movements')
    op.drop_index('uq_cash_sessions_one_open_per_terminal', table_name='cash_sessions')
    op.drop_index(op.f('ix_cash_sessions_status'), table_name='cash_sessions')
    op.drop_index(op.f('ix_cash_sessions_company_id'), table_name='cash_sessions')
    op.drop_table('cash_sessions')
