"""
SQLAlchemy ORM models for onboarding assessments.

This module defines the tables behind the assessment engine:
- TrainingModule: ingested module content (read-only for this service)
- Assessment: generated question sets, one per (type, scope key)
- EmployeeAssessment: employee submissions and their grades
- LearningPlanRow: generated study plans
- EmployeeLearningStyle: learning-style survey answers and classification
"""

import datetime
from sqlalchemy import (
    Column, String, Integer, DateTime, Text, JSON, ForeignKey, Index, UniqueConstraint, text
)

from onboarding.database.base import ModelBase

MODULE_VARIANT_CONSTRAINT = "uq_assessments_module_variant"
BASELINE_COMPANY_CONSTRAINT = "uq_assessments_baseline_company"


class TrainingModule(ModelBase):
    """
    Module content produced by document ingestion.

    ``topics`` and ``objectives`` are JSON arrays of strings.
    """
    __tablename__ = "training_modules"

    id = Column(String(64), primary_key=True)
    company_id = Column(String(64), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    summary = Column(Text, nullable=True)
    topics = Column(JSON, nullable=False, default=list)
    objectives = Column(JSON, nullable=False, default=list)
    order_index = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)


class Assessment(ModelBase):
    """
    A generated question set.

    Module rows leave ``company_id`` NULL and baseline rows leave
    ``module_id`` NULL, so each unique constraint only binds its own type.
    """
    __tablename__ = "assessments"

    id = Column(String(64), primary_key=True)
    type = Column(String(20), nullable=False, index=True)
    company_id = Column(String(64), nullable=True, index=True)
    module_id = Column(String(64), nullable=True, index=True)
    variant = Column(String(50), nullable=True)
    training_id = Column(String(64), nullable=True)
    questions = Column(JSON, nullable=False)
    modules_snapshot = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("type", "module_id", "variant", name=MODULE_VARIANT_CONSTRAINT),
        UniqueConstraint("type", "company_id", name=BASELINE_COMPANY_CONSTRAINT),
    )


class EmployeeAssessment(ModelBase):
    """An employee's graded attempt; at most one row per (employee, module assessment)."""
    __tablename__ = "employee_assessments"

    id = Column(String(64), primary_key=True)
    employee_id = Column(String(64), nullable=False, index=True)
    assessment_id = Column(String(64), ForeignKey("assessments.id"), nullable=False, index=True)
    answers = Column(JSON, nullable=False)
    score = Column(Integer, nullable=False)
    max_score = Column(Integer, nullable=False)
    feedback = Column(Text, nullable=True)
    question_feedback = Column(JSON, nullable=True)
    assessment_type = Column(String(20), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        Index("idx_employee_assessments_employee_assessment", employee_id, assessment_id),
        Index(
            "uq_employee_assessments_module_attempt",
            employee_id,
            assessment_id,
            unique=True,
            postgresql_where=text("assessment_type = 'module'"),
            sqlite_where=text("assessment_type = 'module'"),
        ),
    )


class LearningPlanRow(ModelBase):
    """A generated learning plan; at most one assigned row per employee."""
    __tablename__ = "learning_plans"

    id = Column(String(64), primary_key=True)
    employee_id = Column(String(64), nullable=False, index=True)
    plan_json = Column(JSON, nullable=False)
    status = Column(String(20), nullable=False, default="assigned")
    assessment_hash = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)

    __table_args__ = (
        Index(
            "uq_learning_plans_assigned_employee",
            employee_id,
            unique=True,
            postgresql_where=text("status = 'assigned'"),
            sqlite_where=text("status = 'assigned'"),
        ),
    )


class EmployeeLearningStyle(ModelBase):
    """Learning-style survey submission, one per employee."""
    __tablename__ = "employee_learning_styles"

    employee_id = Column(String(64), primary_key=True)
    answers = Column(JSON, nullable=False)
    learning_style = Column(String(4), nullable=True)
    gpt_analysis = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.datetime.utcnow, nullable=False)
