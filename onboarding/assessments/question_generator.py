"""
Quiz Generator

Builds quiz-generation prompts from module content and turns the generator's
reply into validated :class:`Question` objects. Output that cannot be parsed
yields an empty list; transport failures propagate as ``GenerationError``.
"""

import json
from typing import Any, List, Optional, Sequence, Union

from onboarding.assessments.generation import GenerationClient, parse_json_payload
from onboarding.assessments.models import AssessmentError, LearningStyle, ModuleDescriptor, Question
from onboarding.common.logger import get_logger

logger = get_logger(__name__)

QUIZ_SYSTEM_PROMPT = "You are an expert instructional designer. Respond with JSON only."

STYLE_HINTS = {
    LearningStyle.CONCRETE_SEQUENTIAL: (
        "The learner prefers structured, step-by-step material. Favor ordering questions, "
        "clear procedures and practical, factual multiple-choice questions."
    ),
    LearningStyle.CONCRETE_RANDOM: (
        "The learner prefers experimentation and hands-on problem solving. Favor scenario "
        "questions and realistic workplace situations."
    ),
    LearningStyle.ABSTRACT_SEQUENTIAL: (
        "The learner prefers analysis and logical reasoning. Favor questions about concepts, "
        "cause and effect, and matching related ideas."
    ),
    LearningStyle.ABSTRACT_RANDOM: (
        "The learner prefers discussion and personal reflection. Favor open-ended questions "
        "about how the material applies to working with people."
    ),
}


class QuizGenerator:
    """Prompt builder and response validator for quiz generation."""

    def __init__(self, client: GenerationClient, min_questions: int = 10, max_questions: int = 12):
        self.client = client
        self.min_questions = min_questions
        self.max_questions = max_questions

    def build_prompt(
        self,
        summary: str,
        descriptors: Sequence[Union[ModuleDescriptor, Any]],
        objectives: Sequence[Any],
        style_hint: Optional[LearningStyle] = None
    ) -> str:
        modules = [d.to_dict() if isinstance(d, ModuleDescriptor) else d for d in descriptors]
        prompt = (
            "Given the following training content summary, modules, and objectives, generate a "
            f"{self.min_questions}-{self.max_questions} question quiz that covers a range of topics. "
            "Return a single JSON array and nothing else. Each element must be an object with "
            "\"type\" (one of mcq, true_false, multiple_select, matching, ordering, fill_in_blank, "
            "open_ended, scenario), \"question\", the answer fields for its type "
            "(mcq/true_false: \"options\" and \"correctIndex\"; multiple_select: \"options\" and "
            "\"correctIndices\"; matching: \"options\" as a map of category to choices and "
            "\"correctMatches\"; ordering: \"options\" and \"correctOrder\"; fill_in_blank: "
            "\"acceptedAnswers\"; open_ended and scenario: \"rubric\") and an optional "
            "\"explanation\". Multiple-choice questions have 4 options and exactly one correct answer.\n\n"
            f"Summary: {summary or ''}\n"
            f"Modules: {json.dumps(modules, ensure_ascii=False)}\n"
            f"Objectives: {json.dumps(list(objectives), ensure_ascii=False)}\n"
        )
        if style_hint is not None and style_hint in STYLE_HINTS:
            prompt += f"\nLearner profile: {STYLE_HINTS[style_hint]}\n"
        return prompt

    def parse_questions(self, text: str) -> List[Question]:
        """
        Validate a raw generator reply into questions.

        A bare array is expected, but an object wrapping the array under
        ``questions`` or ``quiz`` is accepted. Items that fail validation are
        dropped; an unparsable reply gives an empty list.
        """
        try:
            payload = parse_json_payload(text)
        except ValueError as e:
            logger.warning(f"Quiz generation returned unparsable output: {e}")
            return []

        if isinstance(payload, dict):
            payload = payload.get("questions", payload.get("quiz"))
        if not isinstance(payload, list):
            logger.warning(f"Quiz generation returned {type(payload).__name__}, expected a list")
            return []

        questions = []
        for index, item in enumerate(payload):
            try:
                questions.append(Question.from_dict(item))
            except AssessmentError as e:
                logger.info(f"Dropping generated question {index}: {e}")
        if len(questions) < len(payload):
            logger.warning(f"Kept {len(questions)} of {len(payload)} generated questions")
        return questions

    async def generate(
        self,
        summary: str,
        descriptors: Sequence[Union[ModuleDescriptor, Any]],
        objectives: Sequence[Any],
        style_hint: Optional[LearningStyle] = None
    ) -> List[Question]:
        """
        Generate a question set for the given content.

        Args:
            summary: Summary of the source training material
            descriptors: Modules the quiz should cover
            objectives: Learning objectives to assess
            style_hint: Optional learning style to tailor question types to

        Returns:
            The valid questions, possibly empty

        Raises:
            GenerationError: If the generation service itself fails
        """
        prompt = self.build_prompt(summary, descriptors, objectives, style_hint)
        logger.debug(f"Requesting quiz generation for {len(descriptors)} module(s)")
        text = await self.client.complete(prompt, system=QUIZ_SYSTEM_PROMPT)
        return self.parse_questions(text)
