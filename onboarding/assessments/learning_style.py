"""
Learning style classification.

Employees answer a 40-statement Likert survey once. The answers are stored,
then the generator classifies them into one of the four Gregorc styles; the
stored style becomes the default variant of the employee's module quizzes.
"""

from typing import Any, List, Optional, Sequence

from onboarding.assessments.generation import GenerationClient, parse_json_payload
from onboarding.assessments.models import LearningStyle, LearningStyleProfile
from onboarding.assessments.repositories import DuplicateRecordError, StoreContext
from onboarding.common.error_handling import ConflictError, GenerationError, ValidationError
from onboarding.common.logger import get_logger
from onboarding.config import settings

logger = get_logger(__name__)

SURVEY_STATEMENTS = (
    "I like having written directions before starting a task.",
    "I prefer to follow a schedule rather than improvise.",
    "I feel most comfortable when rules are clear.",
    "I focus on details before seeing the big picture.",
    "I rely on tried-and-tested methods to get things done.",
    "I need to finish one task before moving to the next.",
    "I learn best by practicing exact procedures.",
    "I find comfort in structure, order, and neatness.",
    "I like working with checklists and measurable steps.",
    "I feel uneasy when things are left open-ended.",
    "I enjoy reading and researching before making decisions.",
    "I like breaking down problems into smaller parts.",
    "I prefer arguments backed by evidence and facts.",
    "I think logically through situations before acting.",
    "I enjoy analyzing patterns, models, and systems.",
    "I often reflect deeply before I share my opinion.",
    "I value accuracy and logical consistency.",
    "I prefer theories and principles to practical examples.",
    "I like well-reasoned debates and discussions.",
    "I enjoy working independently on complex problems.",
    "I learn best through stories or real-life experiences.",
    "I am motivated when learning is connected to people's lives.",
    "I prefer group projects and collaborative discussions.",
    "I often trust my intuition more than data.",
    "I enjoy free-flowing brainstorming sessions.",
    "I find it easy to sense others' feelings in a group.",
    "I value relationships more than rigid rules.",
    "I like using imagination to explore new ideas.",
    "I prefer flexible plans that allow room for change.",
    "I need an emotional connection to stay interested in learning.",
    "I like trying out new methods, even if they fail.",
    "I enjoy solving problems in unconventional ways.",
    "I learn best by experimenting and adjusting as I go.",
    "I dislike strict rules that limit my creativity.",
    "I am energized by competition and challenges.",
    "I like taking risks if there's a chance of high reward.",
    "I get bored doing the same task repeatedly.",
    "I prefer freedom to explore multiple approaches.",
    "I often act quickly and figure things out later.",
    "I am comfortable making decisions with limited information.",
)

STYLE_SYSTEM_PROMPT = "You are an expert learning style analyst."

STYLE_PROMPT = (
    "Given the following {count} survey questions and the user's answers (1-5 scale), analyze and "
    "classify the user's dominant learning style as one of the following: Concrete Sequential (CS), "
    "Concrete Random (CR), Abstract Sequential (AS), or Abstract Random (AR).\n\n"
    "For your response:\n"
    "1. Return the best-fit learning style as one of CS, CR, AS, or AR.\n"
    "2. Provide a detailed analysis justifying the classification and describing how the user "
    "learns best according to this style.\n"
    "Return JSON: {{ \"learning_style\": \"...\", \"analysis\": \"...\" }}\n\n"
    "Survey Responses:\n{pairs}"
)


def validate_answers(answers: Any, expected_count: int) -> List[int]:
    """
    Check the survey answers.

    Raises:
        ValidationError: Unless ``answers`` is a list of exactly
            ``expected_count`` integers between 1 and 5
    """
    if not isinstance(answers, (list, tuple)) or len(answers) != expected_count:
        raise ValidationError(
            f"Exactly {expected_count} answers are required",
            details={"received": len(answers) if isinstance(answers, (list, tuple)) else None}
        )
    for index, answer in enumerate(answers):
        if isinstance(answer, bool) or not isinstance(answer, int) or not 1 <= answer <= 5:
            raise ValidationError(
                f"Answer {index + 1} must be an integer from 1 to 5",
                details={"index": index, "value": answer}
            )
    return list(answers)


class LearningStyleClassifier:
    """Stores survey answers and classifies them once per employee."""

    def __init__(self, store: StoreContext, client: GenerationClient,
                 question_count: Optional[int] = None, default_variant: Optional[str] = None):
        self.store = store
        self.client = client
        self.question_count = question_count or settings.LEARNING_STYLE_QUESTION_COUNT
        self.default_variant = default_variant or settings.DEFAULT_QUIZ_VARIANT

    def build_prompt(self, answers: Sequence[int]) -> str:
        pairs = "\n".join(
            f"Q{i + 1}: {statement}\nA{i + 1}: {answers[i] if i < len(answers) else ''}"
            for i, statement in enumerate(SURVEY_STATEMENTS[:self.question_count])
        )
        return STYLE_PROMPT.format(count=self.question_count, pairs=pairs)

    async def classify(self, employee_id: str, answers: Sequence[int]) -> LearningStyleProfile:
        """
        Record the survey and classify it.

        The answers are stored before classification, so a generator failure
        still counts as the employee's one submission; the returned profile
        then has no style.

        Raises:
            ValidationError: If employee_id is missing or the answers are invalid
            ConflictError: If the employee already submitted the survey
        """
        if not employee_id:
            raise ValidationError("employeeId is required")
        answers = validate_answers(answers, self.question_count)

        if await self.store.learning_styles.get(employee_id) is not None:
            raise ConflictError(
                "Learning style already submitted for this user.",
                details={"employee_id": employee_id}
            )
        profile = LearningStyleProfile(employee_id=employee_id, answers=answers)
        try:
            profile = await self.store.learning_styles.insert(profile)
        except DuplicateRecordError as e:
            raise ConflictError("Learning style already submitted for this user.",
                                details={"employee_id": employee_id}, cause=e)

        try:
            text = await self.client.complete(self.build_prompt(answers), system=STYLE_SYSTEM_PROMPT)
            payload = parse_json_payload(text)
        except GenerationError as e:
            logger.warning(f"Learning style analysis failed for employee {employee_id}: {e}")
            return profile
        except ValueError as e:
            logger.warning(f"Learning style analysis for employee {employee_id} was not valid JSON: {e}")
            return profile

        style = LearningStyle.parse(payload.get("learning_style")) if isinstance(payload, dict) else None
        analysis = payload.get("analysis") if isinstance(payload, dict) else None
        if style is None or not isinstance(analysis, str) or not analysis.strip():
            logger.warning(f"Learning style analysis for employee {employee_id} had no usable classification")
            return profile

        profile.style = style
        profile.analysis = analysis
        profile = await self.store.learning_styles.update(profile)
        logger.info(f"Classified employee {employee_id} as {style.value}")
        return profile

    async def resolve_variant(self, employee_id: Optional[str]) -> str:
        """The quiz variant for an employee: their style code, else the default variant."""
        if not employee_id:
            return self.default_variant
        profile = await self.store.learning_styles.get(employee_id)
        if profile is None or profile.style is None:
            return self.default_variant
        return profile.style.value
