"""add attempts column to generation queue

Revision ID: b81e4f09c6d2
Revises: 3a7c91d2e4b0
Create Date: 2026-10-19 10:30:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b81e4f09c6d2'
down_revision = '3a7c91d2e4b0'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.add_column(
        'generation_queue',
        sa.Column('attempts', sa.Integer(), nullable=False, server_default=sa.text('0')),
    )
    # 租约过期扫描：status = processing AND started_at < cutoff
    op.create_index('ix_gq_status_started', 'generation_queue', ['status', 'started_at'])


def downgrade() -> None:
    op.drop_index('ix_gq_status_started', table_name='generation_queue')
    op.drop_column('generation_queue', 'attempts')
