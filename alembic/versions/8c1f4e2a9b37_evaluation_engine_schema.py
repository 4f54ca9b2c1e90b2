"""evaluation engine schema

Revision ID: 8c1f4e2a9b37
Revises: 
Create Date: 2026-10-17 09:12:40.118204

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8c1f4e2a9b37'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVALUATION_STATUS = sa.Enum(
    'pending_self_evaluation', 'pending_manager_review', 'in_review_session', 'completed',
    name='evaluation_status',
)


def upgrade() -> None:
    op.create_table(
        'stores',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_stores_id', 'stores', ['id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('name', sa.String(), nullable=True),
        sa.Column('hashed_password', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('role', sa.String(), nullable=True, server_default='staff'),
        sa.Column('position', sa.String(), nullable=True, server_default='Team Member'),
        sa.Column('department', sa.String(), nullable=True),
        sa.Column('manager_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=True),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_store_id', 'users', ['store_id'])

    op.create_table(
        'grading_scales',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=True, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
    )
    op.create_table(
        'grading_scale_grades',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('scale_id', sa.Integer(), sa.ForeignKey('grading_scales.id'), nullable=False),
        sa.Column('value', sa.Float(), nullable=False),
        sa.Column('label', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
    )
    op.create_table(
        'templates',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('position', sa.String(), nullable=True),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_templates_store_id', 'templates', ['store_id'])
    op.create_table(
        'template_sections',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('templates.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('order', sa.Integer(), nullable=True, server_default='0'),
    )
    op.create_table(
        'template_criteria',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('section_id', sa.Integer(), sa.ForeignKey('template_sections.id'), nullable=False),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('required', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('order', sa.Integer(), nullable=True, server_default='0'),
        sa.Column('grading_scale_id', sa.Integer(), sa.ForeignKey('grading_scales.id'), nullable=True),
    )

    op.create_table(
        'evaluations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('employee_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('evaluator_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('template_id', sa.Integer(), sa.ForeignKey('templates.id'), nullable=False),
        sa.Column('store_id', sa.Integer(), sa.ForeignKey('stores.id'), nullable=True),
        sa.Column('template_snapshot', sa.JSON(), nullable=False),
        sa.Column('template_name', sa.String(), nullable=False),
        sa.Column('status', EVALUATION_STATUS, nullable=False, server_default='pending_self_evaluation'),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('review_session_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('self_evaluation', sa.JSON(), nullable=False),
        sa.Column('manager_evaluation', sa.JSON(), nullable=False),
        sa.Column('overall_comments', sa.Text(), nullable=True),
        sa.Column('development_plan', sa.Text(), nullable=True),
        sa.Column('overall_score', sa.Float(), nullable=True),
        sa.Column('section_scores', sa.JSON(), nullable=True),
        sa.Column('score_percentage', sa.Float(), nullable=True),
        sa.Column('acknowledged', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('acknowledged_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('acknowledgement_notes', sa.Text(), nullable=True),
        sa.Column('acknowledgement_signature', sa.String(), nullable=True),
        sa.Column('active_employee_id', sa.Integer(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('active_employee_id', name='uq_evaluation_active_employee'),
    )
    op.create_index('ix_evaluations_id', 'evaluations', ['id'])
    op.create_index('ix_evaluations_employee_id', 'evaluations', ['employee_id'])
    op.create_index('ix_evaluations_evaluator_id', 'evaluations', ['evaluator_id'])
    op.create_index('ix_evaluations_store_id', 'evaluations', ['store_id'])

    op.create_table(
        'evaluation_views',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('evaluation_id', sa.Integer(), sa.ForeignKey('evaluations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('viewed_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('evaluation_id', 'user_id', name='uq_evaluation_view_user'),
    )


def downgrade() -> None:
    op.drop_table('evaluation_views')
    op.drop_index('ix_evaluations_store_id', table_name='evaluations')
    op.drop_index('ix_evaluations_evaluator_id', table_name='evaluations')
    op.drop_index('ix_evaluations_employee_id', table_name='evaluations')
    op.drop_index('ix_evaluations_id', table_name='evaluations')
    op.drop_table('evaluations')
    EVALUATION_STATUS.drop(op.get_bind(), checkfirst=True)
    op.drop_table('template_criteria')
    op.drop_table('template_sections')
    op.drop_index('ix_templates_store_id', table_name='templates')
    op.drop_table('templates')
    op.drop_table('grading_scale_grades')
    op.drop_table('grading_scales')
    op.drop_index('ix_users_store_id', table_name='users')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_index('ix_users_id', table_name='users')
    op.drop_table('users')
    op.drop_index('ix_stores_id', table_name='stores')
    op.drop_table('stores')
