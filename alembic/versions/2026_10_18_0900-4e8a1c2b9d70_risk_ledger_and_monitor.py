"""risk ledger and monitor events

Revision ID: 4e8a1c2b9d70
Revises:
Create Date: 2026-10-18 09:00:00.000000+00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4e8a1c2b9d70'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'risk_daily_metrics',
        sa.Column('trading_date', sa.String(length=10), nullable=False),
        sa.Column('start_equity', sa.Numeric(precision=20, scale=8), nullable=False),
        sa.Column('current_equity', sa.Numeric(precision=20, scale=8), nullable=False),
        sa.Column('halted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('trading_date')
    )

    op.create_table(
        'risk_activity_log',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('trading_date', sa.String(length=10), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_risk_activity_date', 'risk_activity_log', ['trading_date'], unique=False)

    op.create_table(
        'monitor_event',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_type', sa.String(length=30), nullable=False),
        sa.Column('symbol', sa.String(length=50), nullable=True),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_monitor_event_event_type'), 'monitor_event', ['event_type'], unique=False)
    op.create_index('idx_monitor_event_type_created', 'monitor_event', ['event_type', 'created_at'], unique=False)


def downgrade() -> None:
    op.drop_index('idx_monitor_event_type_created', table_name='monitor_event')
    op.drop_index(op.f('ix_monitor_event_event_type'), table_name='monitor_event')
    op.drop_table('monitor_event')
    op.drop_index('idx_risk_activity_date', table_name='risk_activity_log')
    op.drop_table('risk_activity_log')
    op.drop_table('risk_daily_metrics')
