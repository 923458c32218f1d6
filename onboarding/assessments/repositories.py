"""
Assessment Repositories

Repository interfaces for the assessment engine. Components never reach for
a global database handle; they receive a :class:`StoreContext` bundling these
repositories, which lets tests substitute the in-memory implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from onboarding.assessments.models import (
    AssessmentRecord,
    AssessmentType,
    LearningPlan,
    LearningStyleProfile,
    ModuleDescriptor,
    SubmissionRecord,
)
from onboarding.common.error_handling import ConflictError


class DuplicateRecordError(ConflictError):
    """Raised by ``insert`` when the store's uniqueness constraint rejects a row."""

    def __init__(self, entity_type: str, key: Tuple, cause: Optional[Exception] = None):
        super().__init__(
            f"{entity_type} already exists for key {key}",
            details={"entity_type": entity_type, "key": list(key)},
            cause=cause
        )
        self.entity_type = entity_type
        self.key = key


class ContentRepository(ABC):
    """Read-only access to ingested module content."""

    @abstractmethod
    async def get_module_descriptor(self, module_id: str) -> Optional[ModuleDescriptor]:
        """
        Get one module's content.

        Args:
            module_id: Module identifier

        Returns:
            The descriptor, or None when the module does not exist
        """
        pass

    @abstractmethod
    async def list_descriptors(
        self,
        company_id: str,
        module_ids: Optional[Sequence[str]] = None
    ) -> List[ModuleDescriptor]:
        """
        List a company's module content, optionally restricted to ``module_ids``.

        Modules belonging to other companies are never returned.
        """
        pass

    @abstractmethod
    async def list_all_descriptors(self) -> List[ModuleDescriptor]:
        """List every available module, used as the catalogue for learning plans."""
        pass


class AssessmentRepository(ABC):
    """Persistence for generated question sets."""

    @abstractmethod
    async def get_by_id(self, assessment_id: str) -> Optional[AssessmentRecord]:
        pass

    @abstractmethod
    async def get_module_assessment(self, module_id: str, variant: str) -> Optional[AssessmentRecord]:
        """
        Get the module assessment stored for a (module, variant) pair.

        Returns:
            The record, or None if none exists
        """
        pass

    @abstractmethod
    async def get_latest_baseline(self, company_id: str) -> Optional[AssessmentRecord]:
        """Get the most recently created baseline assessment of a company."""
        pass

    @abstractmethod
    async def insert(self, record: AssessmentRecord) -> AssessmentRecord:
        """
        Insert a new assessment.

        Raises:
            DuplicateRecordError: If a record with the same scope key exists
            DatabaseError: On any other store failure
        """
        pass

    @abstractmethod
    async def update(self, record: AssessmentRecord) -> AssessmentRecord:
        """
        Replace the questions, fingerprint and training id of an existing record.

        The record keeps its id and creation time.

        Raises:
            NotFoundError: If no record has this id
            DatabaseError: On any other store failure
        """
        pass


class SubmissionRepository(ABC):
    """Persistence for employee submissions."""

    @abstractmethod
    async def find(self, employee_id: str, assessment_id: str) -> Optional[SubmissionRecord]:
        """Get the latest submission of an employee for one assessment."""
        pass

    @abstractmethod
    async def insert(self, submission: SubmissionRecord) -> SubmissionRecord:
        """
        Store a new submission.

        Raises:
            DuplicateRecordError: If it is a module attempt and the employee
                already has one for the same assessment
        """
        pass

    @abstractmethod
    async def update(self, submission: SubmissionRecord) -> SubmissionRecord:
        """Overwrite an existing submission in place, matched by id."""
        pass

    @abstractmethod
    async def list_for_employee(self, employee_id: str) -> List[Tuple[SubmissionRecord, AssessmentType]]:
        """
        List an employee's submissions together with the referenced assessment's type.

        Results are ordered by creation time, oldest first.
        """
        pass


class LearningPlanRepository(ABC):
    """Persistence for learning plans."""

    @abstractmethod
    async def get_assigned(self, employee_id: str) -> Optional[LearningPlan]:
        """Get the employee's plan with status ``assigned``, if any."""
        pass

    @abstractmethod
    async def insert(self, plan: LearningPlan) -> LearningPlan:
        pass

    @abstractmethod
    async def update(self, plan: LearningPlan) -> LearningPlan:
        """Overwrite body, status and hash of an existing plan, matched by id."""
        pass

    @abstractmethod
    async def list_for_employee(self, employee_id: str) -> List[LearningPlan]:
        """All plans of an employee, assigned and superseded, oldest first."""
        pass


class LearningStyleRepository(ABC):
    """Persistence for learning-style survey results."""

    @abstractmethod
    async def get(self, employee_id: str) -> Optional[LearningStyleProfile]:
        pass

    @abstractmethod
    async def insert(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        """
        Raises:
            DuplicateRecordError: If the employee already submitted the survey
        """
        pass

    @abstractmethod
    async def update(self, profile: LearningStyleProfile) -> LearningStyleProfile:
        pass


@dataclass
class StoreContext:
    """The backing-store handle threaded through every component."""

    content: ContentRepository
    assessments: AssessmentRepository
    submissions: SubmissionRepository
    plans: LearningPlanRepository
    learning_styles: LearningStyleRepository
