"""
Assessment Cache Controller

Decides whether a stored question set may be served or must be generated.

Module quizzes are keyed by (module_id, variant) and never invalidated once
stored. Baseline quizzes are keyed by company and carry the canonical content
snapshot they were generated against; a request whose current content
normalizes differently regenerates the questions and updates the same record
in place.

There is no lock around check-generate-insert. The store is re-checked after
generation and its uniqueness constraint is the backstop: whichever writer
loses the race returns the winner's record.
"""

from typing import List, Optional, Sequence

from onboarding.assessments.models import (
    AssessmentRecord,
    AssessmentType,
    LearningStyle,
    Question,
    QuizResult,
)
from onboarding.assessments.question_generator import QuizGenerator
from onboarding.assessments.repositories import DuplicateRecordError, StoreContext
from onboarding.assessments.snapshot import normalize
from onboarding.common.error_handling import ErrorCode, GenerationError, NotFoundError, ValidationError
from onboarding.common.logger import get_logger, log_execution_time
from onboarding.config import settings

logger = get_logger(__name__)

SOURCE_DB = "db"
SOURCE_GENERATED = "generated"


class AssessmentCacheController:
    """Serves module and baseline quizzes, generating them at most once per key."""

    def __init__(self, store: StoreContext, generator: QuizGenerator, default_variant: Optional[str] = None):
        self.store = store
        self.generator = generator
        self.default_variant = default_variant or settings.DEFAULT_QUIZ_VARIANT

    def _ensure_questions(self, questions: List[Question], scope: str) -> List[Question]:
        if not questions:
            logger.error(f"Generation produced no usable questions for {scope}; nothing stored")
            raise GenerationError(
                f"Generation produced no usable questions for {scope}",
                code=ErrorCode.EMPTY_GENERATION,
                details={"scope": scope}
            )
        return questions

    @log_execution_time()
    async def get_or_create_module_quiz(self, module_id: str, variant: Optional[str] = None) -> QuizResult:
        """
        Return the quiz for a module, generating and storing it on first use.

        Args:
            module_id: Module to quiz on
            variant: Learning-style variant; falls back to the default variant

        Returns:
            QuizResult with ``source`` "db" when served from the store

        Raises:
            ValidationError: If module_id is empty
            NotFoundError: If the module does not exist
            GenerationError: If generation fails or yields no questions
        """
        if not module_id:
            raise ValidationError("moduleId is required")
        variant = variant or self.default_variant
        scope = f"module {module_id} variant {variant}"

        existing = await self.store.assessments.get_module_assessment(module_id, variant)
        if existing is not None:
            logger.info(f"Cache hit for {scope}: assessment {existing.id}")
            return QuizResult(existing.id, existing.questions, SOURCE_DB)

        descriptor = await self.store.content.get_module_descriptor(module_id)
        if descriptor is None:
            raise NotFoundError("module", module_id, code=ErrorCode.MODULE_NOT_FOUND)

        logger.info(f"Cache miss for {scope}; generating")
        questions = await self.generator.generate(
            descriptor.summary or descriptor.title,
            [descriptor],
            list(descriptor.objectives),
            style_hint=LearningStyle.parse(variant),
        )
        self._ensure_questions(questions, scope)

        # Another request may have stored a quiz while this one was generating
        existing = await self.store.assessments.get_module_assessment(module_id, variant)
        if existing is not None:
            logger.info(f"Discarding generated quiz for {scope}; assessment {existing.id} stored meanwhile")
            return QuizResult(existing.id, existing.questions, SOURCE_DB)

        record = AssessmentRecord(
            assessment_type=AssessmentType.MODULE,
            questions=questions,
            module_id=module_id,
            variant=variant,
        )
        try:
            stored = await self.store.assessments.insert(record)
        except DuplicateRecordError:
            winner = await self.store.assessments.get_module_assessment(module_id, variant)
            if winner is None:
                raise
            logger.info(f"Lost insert race for {scope}; returning assessment {winner.id}")
            return QuizResult(winner.id, winner.questions, SOURCE_DB)

        logger.info(f"Stored generated quiz for {scope} as assessment {stored.id}")
        return QuizResult(stored.id, stored.questions, SOURCE_GENERATED)

    @log_execution_time()
    async def get_or_create_baseline_quiz(
        self,
        company_id: str,
        module_ids: Sequence[str],
        training_id: Optional[str] = None
    ) -> QuizResult:
        """
        Return the company's baseline quiz, regenerating it when content changed.

        The baseline record is Fresh when its stored snapshot equals the
        normalized current content, Stale when it differs, Absent when the
        company has none. Staleness is never stored; it is recomputed here.

        Raises:
            ValidationError: If company_id or module_ids is empty
            NotFoundError: If none of the modules exist for the company
            GenerationError: If generation fails or yields no questions
        """
        if not company_id:
            raise ValidationError("companyId required")
        if not module_ids or not isinstance(module_ids, (list, tuple)):
            raise ValidationError("moduleIds (array) required")
        scope = f"baseline for company {company_id}"

        descriptors = await self.store.content.list_descriptors(company_id, list(module_ids))
        if not descriptors:
            raise NotFoundError("modules", list(module_ids), code=ErrorCode.MODULE_NOT_FOUND)

        fingerprint = normalize(descriptors)
        existing = await self.store.assessments.get_latest_baseline(company_id)

        if existing is not None and existing.fingerprint == fingerprint:
            logger.info(f"Cache hit for {scope}: assessment {existing.id}")
            return QuizResult(existing.id, existing.questions, SOURCE_DB)

        if existing is None:
            logger.info(f"Cache miss for {scope}; generating")
        else:
            logger.info(f"Stale {scope}: module content changed since assessment {existing.id}; regenerating")

        summary = "\n".join(d.summary for d in descriptors if d.summary)
        objectives = [objective for d in descriptors for objective in d.objectives]
        questions = await self.generator.generate(summary, descriptors, objectives)
        self._ensure_questions(questions, scope)

        if existing is not None:
            return await self._replace_baseline(existing, questions, fingerprint, training_id, scope)

        record = AssessmentRecord(
            assessment_type=AssessmentType.BASELINE,
            questions=questions,
            company_id=company_id,
            fingerprint=fingerprint,
            training_id=training_id,
        )
        try:
            stored = await self.store.assessments.insert(record)
        except DuplicateRecordError:
            winner = await self.store.assessments.get_latest_baseline(company_id)
            if winner is None:
                raise
            if winner.fingerprint == fingerprint:
                logger.info(f"Lost insert race for {scope}; returning assessment {winner.id}")
                return QuizResult(winner.id, winner.questions, SOURCE_DB)
            logger.info(f"Lost insert race for {scope} against other content; updating assessment {winner.id}")
            return await self._replace_baseline(winner, questions, fingerprint, training_id, scope)

        logger.info(f"Stored generated {scope} as assessment {stored.id}")
        return QuizResult(stored.id, stored.questions, SOURCE_GENERATED)

    async def _replace_baseline(
        self,
        existing: AssessmentRecord,
        questions: List[Question],
        fingerprint: str,
        training_id: Optional[str],
        scope: str
    ) -> QuizResult:
        existing.questions = questions
        existing.fingerprint = fingerprint
        existing.training_id = training_id
        updated = await self.store.assessments.update(existing)
        logger.info(f"Updated {scope} in place: assessment {updated.id}")
        return QuizResult(updated.id, updated.questions, SOURCE_GENERATED)
