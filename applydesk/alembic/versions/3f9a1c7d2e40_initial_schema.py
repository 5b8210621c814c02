"""initial_schema

Revision ID: 3f9a1c7d2e40
Revises:
Create Date: 2026-09-28 10:12:41.518204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9a1c7d2e40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create all application tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('name', sa.String(255), nullable=False, server_default=''),
        sa.Column('password_hash', sa.String(255), nullable=True),
        sa.Column('subscription_plan', sa.String(30), nullable=False, server_default='free_trial'),
        sa.Column('subscription_status', sa.String(20), nullable=False, server_default='trialing'),
        sa.Column('trial_ends_at', sa.DateTime, nullable=True),
        sa.Column('has_interview_addon', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('auto_applications_used', sa.Integer, nullable=False, server_default='0'),
        sa.Column('mock_interviews_used', sa.Integer, nullable=False, server_default='0'),
        sa.Column('usage_reset_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), unique=True, nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False, server_default=''),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('location', sa.String(255), nullable=True),
        sa.Column('summary', sa.Text, nullable=False, server_default=''),
        sa.Column('skills', sa.JSON, nullable=False),
        sa.Column('experience_years', sa.Integer, nullable=True),
        sa.Column('job_titles', sa.JSON, nullable=False),
        sa.Column('preferred_locations', sa.JSON, nullable=False),
        sa.Column('employment_types', sa.JSON, nullable=False),
        sa.Column('salary_min', sa.Integer, nullable=True),
        sa.Column('salary_max', sa.Integer, nullable=True),
        sa.Column('resume_text', sa.Text, nullable=False, server_default=''),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'auto_apply_settings',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), unique=True, nullable=False),
        sa.Column('is_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('auto_apply_enabled', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('require_approval', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('notify_on_match', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('min_match_score', sa.Float, nullable=False, server_default='0.75'),
        sa.Column('notify_min_score', sa.Float, nullable=False, server_default='0.6'),
        sa.Column('max_applications_per_day', sa.Integer, nullable=False, server_default='10'),
        sa.Column('review_timeout_hours', sa.Integer, nullable=False, server_default='24'),
        sa.Column('job_titles', sa.JSON, nullable=False),
        sa.Column('locations', sa.JSON, nullable=False),
        sa.Column('excluded_companies', sa.JSON, nullable=False),
        sa.Column('excluded_keywords', sa.JSON, nullable=False),
        sa.Column('require_salary_range', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('last_scan_at', sa.DateTime, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('source', sa.String(30), nullable=False, server_default='jsearch'),
        sa.Column('source_job_id', sa.String(255), nullable=True),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('company', sa.String(255), nullable=False),
        sa.Column('location', sa.String(255), nullable=False, server_default=''),
        sa.Column('description', sa.Text, nullable=False, server_default=''),
        sa.Column('requirements', sa.JSON, nullable=False),
        sa.Column('salary', sa.String(100), nullable=True),
        sa.Column('employment_type', sa.String(30), nullable=True),
        sa.Column('apply_url', sa.Text, nullable=False, server_default=''),
        sa.Column('is_remote', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('posted_at', sa.DateTime, nullable=True),
        sa.Column('match_score', sa.Float, nullable=True),
        sa.Column('match_analysis', sa.JSON, nullable=False),
        sa.Column('cover_letter', sa.Text, nullable=True),
        sa.Column('applied_to', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('processed', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_jobs_user_id', 'jobs', ['user_id'])

    op.create_table(
        'job_queue',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('priority', sa.Integer, nullable=False, server_default='5'),
        sa.Column('attempt_count', sa.Integer, nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer, nullable=False, server_default='3'),
        sa.Column('payload', sa.JSON, nullable=False),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('deduplication_key', sa.String(255), nullable=True),
        sa.Column('error_message', sa.Text, nullable=True),
        sa.Column('available_at', sa.DateTime, nullable=False),
        sa.Column('processed_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_job_queue_type', 'job_queue', ['type'])
    op.create_index('ix_job_queue_status', 'job_queue', ['status'])
    op.create_index('ix_job_queue_user_id', 'job_queue', ['user_id'])
    op.create_index('ix_job_queue_deduplication_key', 'job_queue', ['deduplication_key'])

    op.create_table(
        'applications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('job_id', sa.String(36), sa.ForeignKey('jobs.id'), nullable=True),
        sa.Column('job_title', sa.String(255), nullable=False),
        sa.Column('company', sa.String(255), nullable=False),
        sa.Column('job_url', sa.Text, nullable=False, server_default=''),
        sa.Column('status', sa.String(30), nullable=False, server_default='APPLIED'),
        sa.Column('cover_letter', sa.Text, nullable=True),
        sa.Column('notes', sa.Text, nullable=False, server_default=''),
        sa.Column('applied_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.UniqueConstraint('user_id', 'job_id', name='uq_application_user_job'),
    )
    op.create_index('ix_applications_user_id', 'applications', ['user_id'])

    op.create_table(
        'structured_resumes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), unique=True, nullable=False),
        sa.Column('contact_info', sa.JSON, nullable=False),
        sa.Column('summary', sa.Text, nullable=False, server_default=''),
        sa.Column('experience', sa.JSON, nullable=False),
        sa.Column('education', sa.JSON, nullable=False),
        sa.Column('skills', sa.JSON, nullable=False),
        sa.Column('certifications', sa.JSON, nullable=False),
        sa.Column('projects', sa.JSON, nullable=False),
        sa.Column('is_complete', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('completion_percentage', sa.Integer, nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'customized_resumes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('job_id', sa.String(36), sa.ForeignKey('jobs.id'), nullable=False),
        sa.Column('content', sa.JSON, nullable=False),
        sa.Column('match_score', sa.Float, nullable=False, server_default='0'),
        sa.Column('keywords', sa.JSON, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_customized_resumes_user_id', 'customized_resumes', ['user_id'])

    op.create_table(
        'interview_sessions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('application_id', sa.String(36), sa.ForeignKey('applications.id'), nullable=False),
        sa.Column('job_title', sa.String(255), nullable=False, server_default=''),
        sa.Column('company', sa.String(255), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='IN_PROGRESS'),
        sa.Column('total_questions', sa.Integer, nullable=False, server_default='5'),
        sa.Column('current_question', sa.Integer, nullable=False, server_default='0'),
        sa.Column('started_at', sa.DateTime, nullable=False),
        sa.Column('completed_at', sa.DateTime, nullable=True),
    )
    op.create_index('ix_interview_sessions_user_id', 'interview_sessions', ['user_id'])

    op.create_table(
        'interview_questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('session_id', sa.String(36), sa.ForeignKey('interview_sessions.id'), nullable=False),
        sa.Column('question_index', sa.Integer, nullable=False),
        sa.Column('category', sa.String(20), nullable=False),
        sa.Column('question_text', sa.Text, nullable=False),
        sa.Column('answer_text', sa.Text, nullable=True),
        sa.Column('answered_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'job_notifications',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('job_id', sa.String(36), sa.ForeignKey('jobs.id'), nullable=False),
        sa.Column('match_score', sa.Float, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('message', sa.Text, nullable=False, server_default=''),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('viewed_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_job_notifications_user_id', 'job_notifications', ['user_id'])

    op.create_table(
        'application_reviews',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('job_id', sa.String(36), sa.ForeignKey('jobs.id'), nullable=False),
        sa.Column('notification_id', sa.String(36), sa.ForeignKey('job_notifications.id'), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('cover_letter', sa.Text, nullable=True),
        sa.Column('match_score', sa.Float, nullable=False, server_default='0'),
        sa.Column('user_notes', sa.Text, nullable=True),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('reviewed_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_application_reviews_user_id', 'application_reviews', ['user_id'])

    op.create_table(
        'password_reset_tokens',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('token', sa.String(64), unique=True, nullable=False),
        sa.Column('expires_at', sa.DateTime, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_password_reset_tokens_email', 'password_reset_tokens', ['email'])


def downgrade() -> None:
    """Drop all application tables."""
    op.drop_table('password_reset_tokens')
    op.drop_table('application_reviews')
    op.drop_table('job_notifications')
    op.drop_table('interview_questions')
    op.drop_table('interview_sessions')
    op.drop_table('customized_resumes')
    op.drop_table('structured_resumes')
    op.drop_table('applications')
    op.drop_table('job_queue')
    op.drop_table('jobs')
    op.drop_table('auto_apply_settings')
    op.drop_table('profiles')
    op.drop_table('users')
