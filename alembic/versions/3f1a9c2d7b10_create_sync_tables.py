"""Create sync_jobs and sync_events tables

Revision ID: 3f1a9c2d7b10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '3f1a9c2d7b10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Latest state per job, upserted on every event and progress report
    op.create_table('sync_jobs',
        sa.Column('job_id', sa.String(128), nullable=False),
        sa.Column('tenant_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('user_id', sa.String(128), nullable=True),
        sa.Column('state', sa.String(32), nullable=False, server_default='RUNNING'),
        sa.Column('processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_product_id', sa.String(128), nullable=True),
        sa.Column('current_step', sa.String(255), nullable=True),
        sa.Column('retry_at', sa.BigInteger(), nullable=True),
        sa.Column('last_retry_after', sa.Float(), nullable=True),
        sa.Column('last_event_at', sa.BigInteger(), nullable=False),
        sa.Column('updated_at', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.BigInteger(), nullable=False),
        sa.Column('total_requests', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('requests_last60s', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error429_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('avg_latency_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('throttle_min_delay_ms', sa.Integer(), nullable=False, server_default='1000'),
        sa.Column('throttle_concurrency', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('stall_detected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint('job_id')
    )
    op.create_index('idx_sync_jobs_state_updated', 'sync_jobs', ['state', 'updated_at'])

    # Append-only network call log
    op.create_table('sync_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('job_id', sa.String(128), nullable=False),
        sa.Column('timestamp_ms', sa.BigInteger(), nullable=False),
        sa.Column('timestamp', sa.String(40), nullable=False),
        sa.Column('workspace_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('user_id', sa.String(128), nullable=True),
        sa.Column('product_id', sa.String(128), nullable=True),
        sa.Column('listing_id', sa.String(128), nullable=True),
        sa.Column('operation', sa.String(64), nullable=False, server_default='unknown'),
        sa.Column('http_method', sa.String(16), nullable=False, server_default='GET'),
        sa.Column('endpoint_path', sa.String(512), nullable=False, server_default=''),
        sa.Column('status_code', sa.Integer(), nullable=True),
        sa.Column('duration_ms', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('request_id', sa.String(128), nullable=True),
        sa.Column('retry_after_seconds', sa.Float(), nullable=True),
        sa.Column('rate_limit_headers', sa.JSON(), nullable=True),
        sa.Column('error_code', sa.String(128), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('payload_summary', sa.Text(), nullable=True),
        sa.Column('response_snippet', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('idx_sync_events_job_ts', 'sync_events', ['job_id', 'timestamp_ms'])


def downgrade():
    op.drop_index('idx_sync_events_job_ts', table_name='sync_events')
    op.drop_table('sync_events')
    op.drop_index('idx_sync_jobs_state_updated', table_name='sync_jobs')
    op.drop_table('sync_jobs')
