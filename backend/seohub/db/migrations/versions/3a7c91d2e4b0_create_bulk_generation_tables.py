"""create store credential and bulk generation tables

Revision ID: 3a7c91d2e4b0
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3a7c91d2e4b0'
down_revision = None
branch_labels = None
depends_on = None


STATUS_VALUES = "('pending','processing','completed','failed')"
BATCH_STATUS_VALUES = "('queued','processing','completed','failed')"


def upgrade() -> None:
    op.create_table(
        'store_credentials',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('store_name', sa.String(length=255), nullable=False),
        sa.Column('store_url', sa.Text(), nullable=False),
        sa.Column('consumer_key', sa.String(length=255), nullable=False),
        sa.Column('consumer_secret', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.text('true')),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_store_credentials'),
    )
    op.create_index('ix_store_credentials_user_id', 'store_credentials', ['user_id'])

    op.create_table(
        'bulk_generation_jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('store_id', sa.String(length=36), nullable=False),
        sa.Column('product_ids', postgresql.JSONB(), nullable=False),
        sa.Column('batch_size', sa.Integer(), nullable=False, server_default=sa.text('5')),
        sa.Column('prompt_template', sa.Text(), nullable=False),
        sa.Column('model', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('total_products', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('completed_products', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('failed_products', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('error_message', sa.Text()),
        sa.Column('started_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_bulk_generation_jobs'),
        sa.ForeignKeyConstraint(
            ['store_id'], ['store_credentials.id'],
            name='fk_bulk_generation_jobs_store_id_store_credentials',
        ),
        sa.CheckConstraint(f"status IN {STATUS_VALUES}", name='ck_bulk_generation_jobs_status'),
        sa.CheckConstraint(
            'completed_products + failed_products <= total_products',
            name='ck_bulk_generation_jobs_counters_bounded',
        ),
    )
    op.create_index('ix_bulk_generation_jobs_user_id', 'bulk_generation_jobs', ['user_id'])
    op.create_index('ix_bulk_generation_jobs_store_id', 'bulk_generation_jobs', ['store_id'])
    op.create_index('ix_bgj_status_created', 'bulk_generation_jobs', ['status', 'created_at'])

    op.create_table(
        'generation_queue',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('job_id', sa.String(length=36), nullable=False),
        sa.Column('batch_number', sa.Integer(), nullable=False),
        sa.Column('product_ids', postgresql.JSONB(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='queued'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default=sa.text('0')),
        sa.Column('scheduled_at', sa.DateTime()),
        sa.Column('started_at', sa.DateTime()),
        sa.Column('completed_at', sa.DateTime()),
        sa.Column('error_message', sa.Text()),
        sa.PrimaryKeyConstraint('id', name='pk_generation_queue'),
        sa.ForeignKeyConstraint(
            ['job_id'], ['bulk_generation_jobs.id'],
            name='fk_generation_queue_job_id_bulk_generation_jobs', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('job_id', 'batch_number', name='ux_gq_job_batch'),
        sa.CheckConstraint(f"status IN {BATCH_STATUS_VALUES}", name='ck_generation_queue_status'),
    )
    op.create_index('ix_generation_queue_job_id', 'generation_queue', ['job_id'])
    op.create_index('ix_gq_status_scheduled', 'generation_queue', ['status', 'scheduled_at'])

    op.create_table(
        'bulk_generation_results',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.String(length=36), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('product_name', sa.String(length=512)),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('content', postgresql.JSONB()),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_bulk_generation_results'),
        sa.ForeignKeyConstraint(
            ['job_id'], ['bulk_generation_jobs.id'],
            name='fk_bulk_generation_results_job_id_bulk_generation_jobs', ondelete='CASCADE',
        ),
        sa.UniqueConstraint('job_id', 'product_id', name='ux_bgr_job_product'),
        sa.CheckConstraint(f"status IN {STATUS_VALUES}", name='ck_bulk_generation_results_status'),
    )
    op.create_index('ix_bulk_generation_results_job_id', 'bulk_generation_results', ['job_id'])


def downgrade() -> None:
    op.drop_index('ix_bulk_generation_results_job_id', table_name='bulk_generation_results')
    op.drop_table('bulk_generation_results')

    op.drop_index('ix_gq_status_scheduled', table_name='generation_queue')
    op.drop_index('ix_generation_queue_job_id', table_name='generation_queue')
    op.drop_table('generation_queue')

    op.drop_index('ix_bgj_status_created', table_name='bulk_generation_jobs')
    op.drop_index('ix_bulk_generation_jobs_store_id', table_name='bulk_generation_jobs')
    op.drop_index('ix_bulk_generation_jobs_user_id', table_name='bulk_generation_jobs')
    op.drop_table('bulk_generation_jobs')

    op.drop_index('ix_store_credentials_user_id', table_name='store_credentials')
    op.drop_table('store_credentials')
