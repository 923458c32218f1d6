"""
Memory Repositories

In-memory implementations of the assessment repositories for development and
testing. Records are deep-copied on the way in and out so callers cannot
mutate stored state, and inserts enforce the same uniqueness rules as the
database schema.
"""

import copy
import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from onboarding.assessments.models import (
    AssessmentRecord,
    AssessmentType,
    LearningPlan,
    LearningStyleProfile,
    ModuleDescriptor,
    PlanStatus,
    SubmissionRecord,
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
from onboarding.common.error_handling import NotFoundError
from onboarding.common.logger import get_logger

logger = get_logger(__name__)


class MemoryContentRepository(ContentRepository):
    """Module content held in a dict; ``put`` stands in for ingestion."""

    def __init__(self, initial_data: Optional[List[ModuleDescriptor]] = None):
        self._modules: Dict[str, ModuleDescriptor] = {}
        for descriptor in initial_data or []:
            self.put(descriptor)

    def put(self, descriptor: ModuleDescriptor) -> None:
        """Add or replace a module, the way an administrator re-upload would."""
        self._modules[descriptor.id] = descriptor

    async def get_module_descriptor(self, module_id: str) -> Optional[ModuleDescriptor]:
        return self._modules.get(module_id)

    async def list_descriptors(
        self,
        company_id: str,
        module_ids: Optional[Sequence[str]] = None
    ) -> List[ModuleDescriptor]:
        wanted = set(module_ids) if module_ids is not None else None
        return [
            descriptor for descriptor in self._modules.values()
            if descriptor.company_id == company_id
            and (wanted is None or descriptor.id in wanted)
        ]

    async def list_all_descriptors(self) -> List[ModuleDescriptor]:
        return list(self._modules.values())


class MemoryAssessmentRepository(AssessmentRepository):
    """Assessments keyed by id with a secondary scope-key index."""

    def __init__(self):
        self._records: Dict[str, AssessmentRecord] = {}
        self._by_scope: Dict[Tuple, str] = {}
        self.insert_count = 0
        self.update_count = 0

    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentRecord]:
        record = self._records.get(assessment_id)
        return copy.deepcopy(record) if record else None

    async def get_module_assessment(self, module_id: str, variant: str) -> Optional[AssessmentRecord]:
        record_id = self._by_scope.get((AssessmentType.MODULE.value, module_id, variant or ""))
        return await self.get_by_id(record_id) if record_id else None

    async def get_latest_baseline(self, company_id: str) -> Optional[AssessmentRecord]:
        candidates = [
            record for record in self._records.values()
            if record.assessment_type is AssessmentType.BASELINE and record.company_id == company_id
        ]
        if not candidates:
            return None
        latest = max(candidates, key=lambda record: record.created_at)
        return copy.deepcopy(latest)

    async def insert(self, record: AssessmentRecord) -> AssessmentRecord:
        if record.scope_key in self._by_scope:
            raise DuplicateRecordError("assessment", record.scope_key)
        stored = copy.deepcopy(record)
        self._records[stored.id] = stored
        self._by_scope[stored.scope_key] = stored.id
        self.insert_count += 1
        return copy.deepcopy(stored)

    async def update(self, record: AssessmentRecord) -> AssessmentRecord:
        existing = self._records.get(record.id)
        if existing is None:
            raise NotFoundError("assessment", record.id)
        existing.questions = copy.deepcopy(record.questions)
        existing.fingerprint = record.fingerprint
        existing.training_id = record.training_id
        existing.updated_at = datetime.datetime.utcnow()
        self.update_count += 1
        return copy.deepcopy(existing)

    def all(self) -> List[AssessmentRecord]:
        """Every stored record; not part of the repository interface."""
        return [copy.deepcopy(record) for record in self._records.values()]


class MemorySubmissionRepository(SubmissionRepository):
    """Submissions in insertion order; needs the assessment store to resolve types."""

    def __init__(self, assessments: MemoryAssessmentRepository):
        self._assessments = assessments
        self._submissions: List[SubmissionRecord] = []

    async def find(self, employee_id: str, assessment_id: str) -> Optional[SubmissionRecord]:
        matches = [
            submission for submission in self._submissions
            if submission.employee_id == employee_id and submission.assessment_id == assessment_id
        ]
        return copy.deepcopy(matches[-1]) if matches else None

    async def insert(self, submission: SubmissionRecord) -> SubmissionRecord:
        if submission.assessment_type is AssessmentType.MODULE and any(
            existing.assessment_type is AssessmentType.MODULE
            and existing.employee_id == submission.employee_id
            and existing.assessment_id == submission.assessment_id
            for existing in self._submissions
        ):
            raise DuplicateRecordError("submission", (submission.employee_id, submission.assessment_id))
        self._submissions.append(copy.deepcopy(submission))
        return copy.deepcopy(submission)

    async def update(self, submission: SubmissionRecord) -> SubmissionRecord:
        for index, existing in enumerate(self._submissions):
            if existing.id == submission.id:
                self._submissions[index] = copy.deepcopy(submission)
                return copy.deepcopy(submission)
        raise NotFoundError("submission", submission.id)

    async def list_for_employee(self, employee_id: str) -> List[Tuple[SubmissionRecord, AssessmentType]]:
        results = []
        for submission in self._submissions:
            if submission.employee_id != employee_id:
                continue
            assessment = await self._assessments.get_by_id(submission.assessment_id)
            if assessment is None:
                logger.warning(f"Submission {submission.id} references missing assessment {submission.assessment_id}")
                continue
            results.append((copy.deepcopy(submission), assessment.assessment_type))
        return results


class MemoryLearningPlanRepository(LearningPlanRepository):

    def __init__(self):
        self._plans: Dict[str, LearningPlan] = {}

    async def get_assigned(self, employee_id: str) -> Optional[LearningPlan]:
        for plan in self._plans.values():
            if plan.employee_id == employee_id and plan.status is PlanStatus.ASSIGNED:
                return copy.deepcopy(plan)
        return None

    async def insert(self, plan: LearningPlan) -> LearningPlan:
        if plan.status is PlanStatus.ASSIGNED and await self.get_assigned(plan.employee_id):
            raise DuplicateRecordError("learning_plan", (plan.employee_id, PlanStatus.ASSIGNED.value))
        self._plans[plan.id] = copy.deepcopy(plan)
        return copy.deepcopy(plan)

    async def update(self, plan: LearningPlan) -> LearningPlan:
        if plan.id not in self._plans:
            raise NotFoundError("learning_plan", plan.id)
        stored = copy.deepcopy(plan)
        stored.updated_at = datetime.datetime.utcnow()
        self._plans[plan.id] = stored
        return copy.deepcopy(stored)

    async def list_for_employee(self, employee_id: str) -> List[LearningPlan]:
        plans = [plan for plan in self._plans.values() if plan.employee_id == employee_id]
        return [copy.deepcopy(plan) for plan in sorted(plans, key=lambda plan: plan.created_at)]


class MemoryLearningStyleRepository(LearningStyleRepository):

    def __init__(self):
        self._profiles: Dict[str, LearningStyleProfile] = {}

    async def get(self, employee_id: str) -> Optional[LearningStyleProfile]:
        profile = self._profiles.get(employee_id)
        return copy.deepcopy(profile) if profile else None

    async def insert(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        if profile.employee_id in self._profiles:
            raise DuplicateRecordError("learning_style", (profile.employee_id,))
        self._profiles[profile.employee_id] = copy.deepcopy(profile)
        return copy.deepcopy(profile)

    async def update(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        if profile.employee_id not in self._profiles:
            raise NotFoundError("learning_style", profile.employee_id)
        self._profiles[profile.employee_id] = copy.deepcopy(profile)
        return copy.deepcopy(profile)


def create_memory_store(modules: Optional[List[ModuleDescriptor]] = None) -> StoreContext:
    """Build a fully in-memory store, optionally seeded with module content."""
    assessments = MemoryAssessmentRepository()
    return StoreContext(
        content=MemoryContentRepository(modules),
        assessments=assessments,
        submissions=MemorySubmissionRepository(assessments),
        plans=MemoryLearningPlanRepository(),
        learning_styles=MemoryLearningStyleRepository(),
    )
