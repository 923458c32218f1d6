"""Initial database schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 09:12:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # Module content written by document ingestion
    op.create_table(
        'training_modules',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('company_id', sa.String(64), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('summary', sa.Text(), nullable=True),
        sa.Column('topics', sa.JSON(), nullable=False),
        sa.Column('objectives', sa.JSON(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_training_modules_company_id', 'training_modules', ['company_id'])

    # Generated question sets; module rows leave company_id NULL, baseline rows module_id
    op.create_table(
        'assessments',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('type', sa.String(20), nullable=False),
        sa.Column('company_id', sa.String(64), nullable=True),
        sa.Column('module_id', sa.String(64), nullable=True),
        sa.Column('variant', sa.String(50), nullable=True),
        sa.Column('training_id', sa.String(64), nullable=True),
        sa.Column('questions', sa.JSON(), nullable=False),
        sa.Column('modules_snapshot', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('type', 'module_id', 'variant', name='uq_assessments_module_variant'),
        sa.UniqueConstraint('type', 'company_id', name='uq_assessments_baseline_company')
    )
    op.create_index('ix_assessments_type', 'assessments', ['type'])
    op.create_index('ix_assessments_company_id', 'assessments', ['company_id'])
    op.create_index('ix_assessments_module_id', 'assessments', ['module_id'])

    # Employee attempts
    op.create_table(
        'employee_assessments',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('employee_id', sa.String(64), nullable=False),
        sa.Column('assessment_id', sa.String(64), sa.ForeignKey('assessments.id'), nullable=False),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('score', sa.Integer(), nullable=False),
        sa.Column('max_score', sa.Integer(), nullable=False),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('question_feedback', sa.JSON(), nullable=True),
        sa.Column('assessment_type', sa.String(20), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_employee_assessments_employee_id', 'employee_assessments', ['employee_id'])
    op.create_index('ix_employee_assessments_assessment_id', 'employee_assessments', ['assessment_id'])
    op.create_index(
        'idx_employee_assessments_employee_assessment',
        'employee_assessments',
        ['employee_id', 'assessment_id']
    )
    op.create_index(
        'uq_employee_assessments_module_attempt',
        'employee_assessments',
        ['employee_id', 'assessment_id'],
        unique=True,
        postgresql_where=sa.text("assessment_type = 'module'"),
        sqlite_where=sa.text("assessment_type = 'module'")
    )

    # Learning plans; at most one assigned plan per employee
    op.create_table(
        'learning_plans',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('employee_id', sa.String(64), nullable=False),
        sa.Column('plan_json', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='assigned'),
        sa.Column('assessment_hash', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now())
    )
    op.create_index('ix_learning_plans_employee_id', 'learning_plans', ['employee_id'])
    op.create_index(
        'uq_learning_plans_assigned_employee',
        'learning_plans',
        ['employee_id'],
        unique=True,
        postgresql_where=sa.text("status = 'assigned'"),
        sqlite_where=sa.text("status = 'assigned'")
    )

    # Learning-style survey, one row per employee
    op.create_table(
        'employee_learning_styles',
        sa.Column('employee_id', sa.String(64), primary_key=True),
        sa.Column('answers', sa.JSON(), nullable=False),
        sa.Column('learning_style', sa.String(4), nullable=True),
        sa.Column('gpt_analysis', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())
    )


def downgrade():
    op.drop_table('employee_learning_styles')
    op.drop_index('uq_learning_plans_assigned_employee', table_name='learning_plans')
    op.drop_table('learning_plans')
    op.drop_index('uq_employee_assessments_module_attempt', table_name='employee_assessments')
    op.drop_table('employee_assessments')
    op.drop_table('assessments')
    op.drop_table('training_modules')
