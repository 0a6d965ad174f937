"""Initial JobPing schema

Revision ID: 0001_initial_jobping
Revises: 
Create Date: 2026-10-19

Users with matching preferences, scraped jobs with embedding columns, and
analytics events.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_jobping'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('subscription_tier', sa.String(32), nullable=False, server_default='free'),
        sa.Column('active', sa.Boolean, server_default=sa.true()),
        sa.Column('target_cities', sa.JSON),
        sa.Column('career_path', sa.JSON),
        sa.Column('roles_selected', sa.JSON),
        sa.Column('entry_level_preference', sa.String(64)),
        sa.Column('work_environment', sa.String(64)),
        sa.Column('visa_status', sa.String(128)),
        sa.Column('career_keywords', sa.Text),
        sa.Column('skills', sa.JSON),
        sa.Column('industries', sa.JSON),
        sa.Column('company_size_preference', sa.String(64)),
        sa.Column('professional_expertise', sa.Text),
        sa.Column('created_at', sa.DateTime),
        sa.Column('updated_at', sa.DateTime),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint("subscription_tier in ('free', 'premium', 'premium_pending')",
                           name='check_subscription_tier'),
    )

    op.create_table('jobs',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('job_hash', sa.String(64), nullable=False),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('company', sa.String(255), nullable=False),
        sa.Column('location', sa.String(500)),
        sa.Column('city', sa.String(128)),
        sa.Column('country', sa.String(128)),
        sa.Column('job_url', sa.String(1000)),
        sa.Column('description', sa.Text),
        sa.Column('experience_required', sa.String(64)),
        sa.Column('work_environment', sa.String(64)),
        sa.Column('source', sa.String(64)),
        sa.Column('categories', sa.JSON),
        sa.Column('visa_friendly', sa.Boolean),
        sa.Column('is_active', sa.Boolean, server_default=sa.true()),
        sa.Column('posted_at', sa.DateTime),
        sa.Column('created_at', sa.DateTime),
        sa.Column('embedding', sa.JSON),
        sa.Column('embedding_model', sa.String(128)),
        sa.Column('embedded_at', sa.DateTime),
        sa.UniqueConstraint('job_hash', name='uq_jobs_job_hash'),
    )
    op.create_index('idx_jobs_created_at', 'jobs', ['created_at'])
    op.create_index('idx_jobs_source', 'jobs', ['source'])
    op.create_index('idx_jobs_city', 'jobs', ['city'])
    op.create_index('idx_jobs_active', 'jobs', ['is_active'])

    op.create_table('analytics_events',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('event_name', sa.String(255), nullable=False),
        sa.Column('properties', sa.JSON),
        sa.Column('timestamp', sa.DateTime),
        sa.Column('url', sa.String(2000)),
        sa.Column('user_agent', sa.String(1000)),
        sa.Column('ip_address', sa.String(128)),
        sa.Column('created_at', sa.DateTime),
    )
    op.create_index('idx_analytics_event_name', 'analytics_events', ['event_name'])


def downgrade():
    op.drop_index('idx_analytics_event_name', table_name='analytics_events')
    op.drop_table('analytics_events')
    for name in ('idx_jobs_active', 'idx_jobs_city', 'idx_jobs_source', 'idx_jobs_created_at'):
        op.drop_index(name, table_name='jobs')
    op.drop_table('jobs')
    op.drop_table('users')
