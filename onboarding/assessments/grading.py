"""
Grading Engine

Scores a submission against a question set. Closed-form questions are checked
locally; everything else (free text, unknown types, answers whose shape does
not fit the question) is sent in a single rubric-grading request to the
generator. Local verdicts are final and the score is always recomputed from
the reconciled per-question booleans, so the generator's own totals are
never trusted.
"""

import json
from typing import Any, List, Mapping, Optional, Sequence, Union

from onboarding.assessments.generation import GenerationClient, parse_json_payload
from onboarding.assessments.models import (
    AssessmentError,
    GradeResult,
    Question,
    UnknownQuestion,
    questions_to_dicts,
)
from onboarding.common.error_handling import GenerationError
from onboarding.common.logger import get_logger

logger = get_logger(__name__)

RUBRIC_SYSTEM_PROMPT = "You are an assessment grader. Only return JSON. No extra text."

RUBRIC_PROMPT = """Given the following quiz questions and the user's submitted answers, grade each question as correct or incorrect and return a JSON object with:
{{
  "perQuestion": [true|false, ...],
  "score": number,
  "maxScore": number,
  "explanations": [string, ...]
}}

Rules:
- For open-ended, fill-in-the-blank and scenario questions, judge the answer against the rubric or accepted answers when given and infer correctness reasonably otherwise.
- If there is insufficient information, mark the question false.
- maxScore = number of questions.
- Give a brief explanation per question, especially for incorrect answers.
Questions: {questions}
UserAnswers: {answers}"""


def coerce_question(item: Union[Question, Mapping[str, Any]]) -> Question:
    """Turn a raw question object into a Question, falling back to rubric grading."""
    if isinstance(item, Question):
        return item
    try:
        return Question.from_dict(item)
    except AssessmentError as e:
        logger.info(f"Question could not be validated, grading by rubric: {e}")
        payload = dict(item) if isinstance(item, Mapping) else {"question": str(item)}
        text = payload.get("question") or payload.get("text") or "(untitled question)"
        return UnknownQuestion(text=str(text), raw_type=str(payload.get("type", "")), payload=payload)


class GradingEngine:
    """Deterministic local grading with a single rubric fallback call."""

    def __init__(self, client: Optional[GenerationClient] = None):
        self.client = client

    async def grade(
        self,
        questions: Sequence[Union[Question, Mapping[str, Any]]],
        answers: Sequence[Any]
    ) -> GradeResult:
        """
        Grade ``answers`` against ``questions``.

        Missing answers count as unanswered. No partial credit is given and
        ``max_score`` is always the number of questions.
        """
        parsed = [coerce_question(item) for item in questions]
        answers = list(answers or [])
        padded = answers + [None] * (len(parsed) - len(answers))

        verdicts: List[Optional[bool]] = [
            question.check(answer) for question, answer in zip(parsed, padded)
        ]
        explanations = [question.explanation or "" for question in parsed]
        delegated = [index for index, verdict in enumerate(verdicts) if verdict is None]

        if delegated:
            rubric = await self._rubric_grade(parsed, padded)
            rubric_verdicts = rubric.get("perQuestion") if isinstance(rubric.get("perQuestion"), list) else []
            rubric_explanations = rubric.get("explanations") if isinstance(rubric.get("explanations"), list) else []
            for index in delegated:
                verdict = rubric_verdicts[index] if index < len(rubric_verdicts) else None
                verdicts[index] = verdict if isinstance(verdict, bool) else False
                explanation = rubric_explanations[index] if index < len(rubric_explanations) else None
                explanations[index] = explanation if isinstance(explanation, str) else ""

        per_question = [bool(verdict) for verdict in verdicts]
        score = sum(1 for verdict in per_question if verdict)
        logger.debug(f"Graded {len(parsed)} question(s), {len(delegated)} by rubric: {score}/{len(parsed)}")
        return GradeResult(
            score=score,
            max_score=len(parsed),
            per_question_correct=per_question,
            explanations=explanations,
            delegated=delegated,
        )

    async def _rubric_grade(self, questions: List[Question], answers: List[Any]) -> dict:
        """Ask the generator for verdicts; any failure yields an empty result."""
        if self.client is None:
            logger.warning("No generation client configured; delegated questions marked incorrect")
            return {}

        prompt = RUBRIC_PROMPT.format(
            questions=json.dumps(questions_to_dicts(questions), ensure_ascii=False, default=str),
            answers=json.dumps(answers, ensure_ascii=False, default=str),
        )
        try:
            text = await self.client.complete(prompt, system=RUBRIC_SYSTEM_PROMPT)
        except GenerationError as e:
            logger.warning(f"Rubric grading unavailable: {e}")
            return {}
        try:
            payload = parse_json_payload(text)
        except ValueError as e:
            logger.warning(f"Rubric grading returned unparsable output: {e}")
            return {}
        if not isinstance(payload, dict):
            logger.warning(f"Rubric grading returned {type(payload).__name__}, expected an object")
            return {}
        return payload
