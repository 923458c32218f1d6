"""
Submission recording.

Grades an employee's answers, asks the generator for a short coaching note
and records the attempt. Module attempts keep one row per (employee,
assessment), overwritten on retake; baseline attempts are append-only.
"""

import json
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from onboarding.assessments.generation import GenerationClient
from onboarding.assessments.grading import GradingEngine
from onboarding.assessments.models import (
    AssessmentType,
    GradeResult,
    ModuleDescriptor,
    Question,
    SubmissionRecord,
)
from onboarding.assessments.repositories import DuplicateRecordError, StoreContext
from onboarding.common.error_handling import (
    DatabaseError,
    ErrorCode,
    GenerationError,
    NotFoundError,
    ValidationError,
    log_error,
)
from onboarding.common.logger import get_logger

logger = get_logger(__name__)

FALLBACK_FEEDBACK = "Feedback is not available right now. Review the explanations for each question."

FEEDBACK_PROMPT = (
    "You are an AI learning coach. Given the following assessment results, provide concise, "
    "actionable feedback for the employee. Highlight strengths, weak areas, and suggest next "
    "steps for improvement. Use a friendly, supportive tone.\n\n"
    "Score: {score} / {max_score}\n\n"
    "Module Info: {modules}\n\n"
    "Answers: {answers}\n\n"
    "Feedback per question: {explanations}\n"
)


@dataclass
class SubmissionOutcome:
    """Grading result of one attempt plus what happened when storing it."""

    grade: GradeResult
    feedback: str
    submission: Optional[SubmissionRecord] = None
    persistence_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = self.grade.to_dict()
        data["feedback"] = self.feedback
        if self.submission is not None:
            data["submissionId"] = self.submission.id
        if self.persistence_error:
            data["persistenceError"] = self.persistence_error
        return data


class SubmissionService:
    """Grades and records employee attempts."""

    def __init__(self, store: StoreContext, grader: GradingEngine, client: Optional[GenerationClient] = None):
        self.store = store
        self.grader = grader
        self.client = client

    async def generate_feedback(
        self,
        grade: GradeResult,
        answers: Sequence[Any],
        modules: Sequence[ModuleDescriptor] = ()
    ) -> str:
        """Coaching summary for a graded attempt; falls back to fixed text on failure."""
        if self.client is None:
            return FALLBACK_FEEDBACK
        prompt = FEEDBACK_PROMPT.format(
            score=grade.score,
            max_score=grade.max_score,
            modules=json.dumps([module.to_dict() for module in modules], ensure_ascii=False),
            answers=json.dumps(list(answers), ensure_ascii=False, default=str),
            explanations=json.dumps(grade.explanations, ensure_ascii=False),
        )
        try:
            text = await self.client.complete(prompt)
        except GenerationError as e:
            logger.warning(f"Feedback generation failed, using fallback text: {e}")
            return FALLBACK_FEEDBACK
        return text.strip() or FALLBACK_FEEDBACK

    async def preview(
        self,
        questions: Sequence[Union[Question, Mapping[str, Any]]],
        answers: Sequence[Any]
    ) -> SubmissionOutcome:
        """Grade and coach without recording anything, for practice runs."""
        if not questions:
            raise ValidationError("questions must not be empty")
        if not isinstance(answers, (list, tuple)):
            raise ValidationError("submittedAnswers must be an array")
        grade = await self.grader.grade(questions, answers)
        return SubmissionOutcome(grade=grade, feedback=await self.generate_feedback(grade, answers))

    async def submit(
        self,
        employee_id: str,
        assessment_id: str,
        answers: Sequence[Any],
        questions: Optional[Sequence[Union[Question, Mapping[str, Any]]]] = None
    ) -> SubmissionOutcome:
        """
        Grade and record one attempt.

        Args:
            employee_id: Employee submitting
            assessment_id: Stored assessment the answers belong to
            answers: Submitted answers, positionally matching the questions
            questions: Question set as shown to the employee; defaults to the
                stored questions of the assessment

        Returns:
            SubmissionOutcome; a store failure after grading is reported in
            ``persistence_error`` rather than raised

        Raises:
            ValidationError: If identifiers or answers are missing
            NotFoundError: If the assessment does not exist
        """
        if not employee_id:
            raise ValidationError("employeeId is required")
        if not assessment_id:
            raise ValidationError("assessmentId is required")
        if not isinstance(answers, (list, tuple)):
            raise ValidationError("submittedAnswers must be an array")

        assessment = await self.store.assessments.get_by_id(assessment_id)
        if assessment is None:
            raise NotFoundError("assessment", assessment_id, code=ErrorCode.ASSESSMENT_NOT_FOUND)

        graded_questions = list(questions) if questions else assessment.questions
        grade = await self.grader.grade(graded_questions, answers)

        modules: List[ModuleDescriptor] = []
        if assessment.module_id:
            descriptor = await self.store.content.get_module_descriptor(assessment.module_id)
            if descriptor is not None:
                modules.append(descriptor)
        feedback = await self.generate_feedback(grade, answers, modules)

        record = SubmissionRecord(
            employee_id=employee_id,
            assessment_id=assessment_id,
            answers=list(answers),
            score=grade.score,
            max_score=grade.max_score,
            feedback=feedback,
            question_feedback=list(grade.explanations),
        )
        outcome = SubmissionOutcome(grade=grade, feedback=feedback)
        try:
            outcome.submission = await self._persist(record, assessment.assessment_type)
        except DatabaseError as e:
            log_error(e, context={"employee_id": employee_id, "assessment_id": assessment_id})
            outcome.persistence_error = e.message
        return outcome

    async def _persist(self, record: SubmissionRecord, assessment_type: AssessmentType) -> SubmissionRecord:
        record.assessment_type = assessment_type
        if assessment_type is AssessmentType.BASELINE:
            logger.info(f"Recording baseline attempt of employee {record.employee_id} on {record.assessment_id}")
            return await self.store.submissions.insert(record)

        existing = await self.store.submissions.find(record.employee_id, record.assessment_id)
        if existing is None:
            logger.info(f"Recording first attempt of employee {record.employee_id} on {record.assessment_id}")
            try:
                return await self.store.submissions.insert(record)
            except DuplicateRecordError:
                existing = await self.store.submissions.find(record.employee_id, record.assessment_id)
                if existing is None:
                    raise
                logger.info(f"Attempt {existing.id} was recorded concurrently; overwriting it")

        logger.info(f"Overwriting attempt {existing.id} of employee {record.employee_id} on {record.assessment_id}")
        record.id = existing.id
        return await self.store.submissions.update(record)
