"""
SQL Repositories

SQLAlchemy async implementations of the assessment repositories. Each
operation opens its own session from the factory it was built with; the
unique constraints on the tables are what make ``insert`` raise
:class:`DuplicateRecordError` when a concurrent writer got there first.
"""

import datetime
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import select, desc
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from onboarding.assessments.database_models import (
    Assessment as AssessmentORM,
    EmployeeAssessment as EmployeeAssessmentORM,
    EmployeeLearningStyle as EmployeeLearningStyleORM,
    LearningPlanRow as LearningPlanORM,
    TrainingModule as TrainingModuleORM,
)
from onboarding.assessments.models import (
    AssessmentError,
    AssessmentRecord,
    AssessmentType,
    LearningPlan,
    LearningStyle,
    LearningStyleProfile,
    ModuleDescriptor,
    PlanStatus,
    SubmissionRecord,
    questions_from_dicts,
    questions_to_dicts,
)
from onboarding.assessments.repositories import (
    AssessmentRepository,
    ContentRepository,
    DuplicateRecordError,
    LearningPlanRepository,
    LearningStyleRepository,
    StoreContext,
    SubmissionRepository,
)
from onboarding.common.error_handling import DatabaseError, NotFoundError
from onboarding.common.logger import get_logger

logger = get_logger(__name__)


class _SqlRepository:
    """Shared session handling for the SQL repositories."""

    entity_type = "record"

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def _database_error(self, operation: str, error: Exception) -> DatabaseError:
        logger.error(f"Database error during {self.entity_type} {operation}: {error}", exc_info=True)
        return DatabaseError(
            f"Database error during {self.entity_type} {operation}",
            operation=operation,
            cause=error
        )


def _descriptor_from_orm(row: TrainingModuleORM) -> ModuleDescriptor:
    return ModuleDescriptor(
        id=row.id,
        title=row.title,
        topics=tuple(row.topics or ()),
        objectives=tuple(row.objectives or ()),
        summary=row.summary,
        company_id=row.company_id,
    )


class SqlContentRepository(_SqlRepository, ContentRepository):
    entity_type = "training_module"

    async def get_module_descriptor(self, module_id: str) -> Optional[ModuleDescriptor]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TrainingModuleORM).where(TrainingModuleORM.id == module_id)
                )
                row = result.scalar_one_or_none()
                return _descriptor_from_orm(row) if row else None
        except SQLAlchemyError as e:
            raise self._database_error("get", e)

    async def list_descriptors(
        self,
        company_id: str,
        module_ids: Optional[Sequence[str]] = None
    ) -> List[ModuleDescriptor]:
        stmt = select(TrainingModuleORM).where(TrainingModuleORM.company_id == company_id)
        if module_ids is not None:
            stmt = stmt.where(TrainingModuleORM.id.in_(list(module_ids)))
        stmt = stmt.order_by(TrainingModuleORM.order_index, TrainingModuleORM.id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                return [_descriptor_from_orm(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._database_error("list", e)

    async def list_all_descriptors(self) -> List[ModuleDescriptor]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(TrainingModuleORM).order_by(TrainingModuleORM.order_index, TrainingModuleORM.id)
                )
                return [_descriptor_from_orm(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._database_error("list", e)


class SqlAssessmentRepository(_SqlRepository, AssessmentRepository):
    entity_type = "assessment"

    def _map_orm_to_domain(self, row: AssessmentORM) -> AssessmentRecord:
        try:
            questions = questions_from_dicts(row.questions or [])
        except AssessmentError as e:
            raise DatabaseError(f"Stored assessment {row.id} has malformed questions",
                                operation="map", cause=e)
        return AssessmentRecord(
            id=row.id,
            assessment_type=AssessmentType(row.type),
            questions=questions,
            company_id=row.company_id,
            module_id=row.module_id,
            variant=row.variant,
            fingerprint=row.modules_snapshot,
            training_id=row.training_id,
            created_at=row.created_at,
            updated_at=row.updated_at or row.created_at,
        )

    async def _fetch_one(self, stmt, operation: str) -> Optional[AssessmentRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(stmt)
                row = result.scalars().first()
                return self._map_orm_to_domain(row) if row else None
        except SQLAlchemyError as e:
            raise self._database_error(operation, e)

    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentRecord]:
        return await self._fetch_one(
            select(AssessmentORM).where(AssessmentORM.id == assessment_id),
            "get"
        )

    async def get_module_assessment(self, module_id: str, variant: str) -> Optional[AssessmentRecord]:
        return await self._fetch_one(
            select(AssessmentORM).where(
                AssessmentORM.type == AssessmentType.MODULE.value,
                AssessmentORM.module_id == module_id,
                AssessmentORM.variant == variant,
            ),
            "lookup"
        )

    async def get_latest_baseline(self, company_id: str) -> Optional[AssessmentRecord]:
        return await self._fetch_one(
            select(AssessmentORM)
            .where(
                AssessmentORM.type == AssessmentType.BASELINE.value,
                AssessmentORM.company_id == company_id,
            )
            .order_by(desc(AssessmentORM.created_at))
            .limit(1),
            "lookup"
        )

    async def insert(self, record: AssessmentRecord) -> AssessmentRecord:
        row = AssessmentORM(
            id=record.id,
            type=record.assessment_type.value,
            company_id=record.company_id,
            module_id=record.module_id,
            variant=record.variant,
            training_id=record.training_id,
            questions=questions_to_dicts(record.questions),
            modules_snapshot=record.fingerprint,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(row)
            logger.debug(f"Inserted assessment {record.id} for scope {record.scope_key}")
            return record
        except IntegrityError as e:
            raise DuplicateRecordError("assessment", record.scope_key, cause=e)
        except SQLAlchemyError as e:
            raise self._database_error("insert", e)

    async def update(self, record: AssessmentRecord) -> AssessmentRecord:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(AssessmentORM, record.id)
                    if row is None:
                        raise NotFoundError("assessment", record.id)
                    row.questions = questions_to_dicts(record.questions)
                    row.modules_snapshot = record.fingerprint
                    row.training_id = record.training_id
                    row.updated_at = datetime.datetime.utcnow()
                    updated = self._map_orm_to_domain(row)
            return updated
        except SQLAlchemyError as e:
            raise self._database_error("update", e)


def _submission_from_orm(row: EmployeeAssessmentORM) -> SubmissionRecord:
    return SubmissionRecord(
        id=row.id,
        employee_id=row.employee_id,
        assessment_id=row.assessment_id,
        answers=row.answers,
        score=row.score,
        max_score=row.max_score,
        feedback=row.feedback or "",
        question_feedback=list(row.question_feedback or []),
        assessment_type=AssessmentType(row.assessment_type) if row.assessment_type else None,
        created_at=row.created_at,
    )


class SqlSubmissionRepository(_SqlRepository, SubmissionRepository):
    entity_type = "submission"

    async def find(self, employee_id: str, assessment_id: str) -> Optional[SubmissionRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(EmployeeAssessmentORM)
                    .where(
                        EmployeeAssessmentORM.employee_id == employee_id,
                        EmployeeAssessmentORM.assessment_id == assessment_id,
                    )
                    .order_by(desc(EmployeeAssessmentORM.created_at))
                    .limit(1)
                )
                row = result.scalars().first()
                return _submission_from_orm(row) if row else None
        except SQLAlchemyError as e:
            raise self._database_error("find", e)

    async def insert(self, submission: SubmissionRecord) -> SubmissionRecord:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(EmployeeAssessmentORM(
                        id=submission.id,
                        employee_id=submission.employee_id,
                        assessment_id=submission.assessment_id,
                        answers=submission.answers,
                        score=submission.score,
                        max_score=submission.max_score,
                        feedback=submission.feedback,
                        question_feedback=list(submission.question_feedback),
                        assessment_type=submission.assessment_type.value if submission.assessment_type else None,
                        created_at=submission.created_at,
                    ))
            return submission
        except IntegrityError as e:
            raise DuplicateRecordError("submission", (submission.employee_id, submission.assessment_id), cause=e)
        except SQLAlchemyError as e:
            raise self._database_error("insert", e)

    async def update(self, submission: SubmissionRecord) -> SubmissionRecord:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(EmployeeAssessmentORM, submission.id)
                    if row is None:
                        raise NotFoundError("submission", submission.id)
                    row.answers = submission.answers
                    row.score = submission.score
                    row.max_score = submission.max_score
                    row.feedback = submission.feedback
                    row.question_feedback = list(submission.question_feedback)
                    row.created_at = submission.created_at
            return submission
        except SQLAlchemyError as e:
            raise self._database_error("update", e)

    async def list_for_employee(self, employee_id: str) -> List[Tuple[SubmissionRecord, AssessmentType]]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(EmployeeAssessmentORM, AssessmentORM.type)
                    .join(AssessmentORM, AssessmentORM.id == EmployeeAssessmentORM.assessment_id)
                    .where(EmployeeAssessmentORM.employee_id == employee_id)
                    .order_by(EmployeeAssessmentORM.created_at, EmployeeAssessmentORM.id)
                )
                return [
                    (_submission_from_orm(row), AssessmentType(assessment_type))
                    for row, assessment_type in result.all()
                ]
        except SQLAlchemyError as e:
            raise self._database_error("list", e)


def _plan_from_orm(row: LearningPlanORM) -> LearningPlan:
    return LearningPlan(
        id=row.id,
        employee_id=row.employee_id,
        body=row.plan_json,
        assessment_hash=row.assessment_hash,
        status=PlanStatus(row.status),
        created_at=row.created_at,
        updated_at=row.updated_at or row.created_at,
    )


class SqlLearningPlanRepository(_SqlRepository, LearningPlanRepository):
    entity_type = "learning_plan"

    async def get_assigned(self, employee_id: str) -> Optional[LearningPlan]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(LearningPlanORM)
                    .where(
                        LearningPlanORM.employee_id == employee_id,
                        LearningPlanORM.status == PlanStatus.ASSIGNED.value,
                    )
                    .order_by(desc(LearningPlanORM.created_at))
                    .limit(1)
                )
                row = result.scalars().first()
                return _plan_from_orm(row) if row else None
        except SQLAlchemyError as e:
            raise self._database_error("get", e)

    async def insert(self, plan: LearningPlan) -> LearningPlan:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(LearningPlanORM(
                        id=plan.id,
                        employee_id=plan.employee_id,
                        plan_json=plan.body,
                        status=plan.status.value,
                        assessment_hash=plan.assessment_hash,
                        created_at=plan.created_at,
                        updated_at=plan.updated_at,
                    ))
            return plan
        except IntegrityError as e:
            raise DuplicateRecordError("learning_plan", (plan.employee_id, plan.status.value), cause=e)
        except SQLAlchemyError as e:
            raise self._database_error("insert", e)

    async def update(self, plan: LearningPlan) -> LearningPlan:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(LearningPlanORM, plan.id)
                    if row is None:
                        raise NotFoundError("learning_plan", plan.id)
                    row.plan_json = plan.body
                    row.status = plan.status.value
                    row.assessment_hash = plan.assessment_hash
                    row.updated_at = datetime.datetime.utcnow()
                    updated = _plan_from_orm(row)
            return updated
        except SQLAlchemyError as e:
            raise self._database_error("update", e)

    async def list_for_employee(self, employee_id: str) -> List[LearningPlan]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(LearningPlanORM)
                    .where(LearningPlanORM.employee_id == employee_id)
                    .order_by(LearningPlanORM.created_at)
                )
                return [_plan_from_orm(row) for row in result.scalars().all()]
        except SQLAlchemyError as e:
            raise self._database_error("list", e)


def _profile_from_orm(row: EmployeeLearningStyleORM) -> LearningStyleProfile:
    return LearningStyleProfile(
        employee_id=row.employee_id,
        answers=list(row.answers or []),
        style=LearningStyle.parse(row.learning_style),
        analysis=row.gpt_analysis,
        created_at=row.created_at,
    )


class SqlLearningStyleRepository(_SqlRepository, LearningStyleRepository):
    entity_type = "learning_style"

    async def get(self, employee_id: str) -> Optional[LearningStyleProfile]:
        try:
            async with self._session_factory() as session:
                row = await session.get(EmployeeLearningStyleORM, employee_id)
                return _profile_from_orm(row) if row else None
        except SQLAlchemyError as e:
            raise self._database_error("get", e)

    async def insert(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(EmployeeLearningStyleORM(
                        employee_id=profile.employee_id,
                        answers=list(profile.answers),
                        learning_style=profile.style.value if profile.style else None,
                        gpt_analysis=profile.analysis,
                        created_at=profile.created_at,
                    ))
            return profile
        except IntegrityError as e:
            raise DuplicateRecordError("learning_style", (profile.employee_id,), cause=e)
        except SQLAlchemyError as e:
            raise self._database_error("insert", e)

    async def update(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    row = await session.get(EmployeeLearningStyleORM, profile.employee_id)
                    if row is None:
                        raise NotFoundError("learning_style", profile.employee_id)
                    row.answers = list(profile.answers)
                    row.learning_style = profile.style.value if profile.style else None
                    row.gpt_analysis = profile.analysis
            return profile
        except SQLAlchemyError as e:
            raise self._database_error("update", e)


def create_sql_store(session_factory: sessionmaker) -> StoreContext:
    """Build a store whose repositories share one session factory."""
    return StoreContext(
        content=SqlContentRepository(session_factory),
        assessments=SqlAssessmentRepository(session_factory),
        submissions=SqlSubmissionRepository(session_factory),
        plans=SqlLearningPlanRepository(session_factory),
        learning_styles=SqlLearningStyleRepository(session_factory),
    )
