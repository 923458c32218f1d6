"""
Assessment Models

Domain models for the onboarding assessment engine: module content
descriptors, the per-type question variants, stored assessments, employee
submissions and learning plans.

Questions are a tagged union keyed by ``QuestionType``. Each variant knows
its own option shape and how to check an answer locally; variants that cannot
be checked locally (open-ended, scenario, fill-in-the-blank, unknown types)
return ``None`` from :meth:`Question.check` so the grader delegates them.
"""

import enum
import uuid
import datetime
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Mapping, Optional, Sequence, Tuple, Type


class AssessmentError(Exception):
    """Raised when a question or assessment payload is malformed."""
    pass


class AssessmentType(enum.Enum):
    """Kinds of stored assessment."""
    BASELINE = "baseline"
    MODULE = "module"


class PlanStatus(enum.Enum):
    """Lifecycle of a learning plan row."""
    ASSIGNED = "assigned"
    SUPERSEDED = "superseded"


class LearningStyle(enum.Enum):
    """Gregorc-style learner classification used as the module quiz variant."""
    CONCRETE_SEQUENTIAL = "CS"
    CONCRETE_RANDOM = "CR"
    ABSTRACT_SEQUENTIAL = "AS"
    ABSTRACT_RANDOM = "AR"

    @classmethod
    def parse(cls, value: Any) -> Optional['LearningStyle']:
        """Accept either the two-letter code or the spelled-out name."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        cleaned = value.strip().upper()
        for style in cls:
            if cleaned == style.value or cleaned.replace(" ", "_") == style.name:
                return style
        return None


class QuestionType(enum.Enum):
    """Question types the generator may produce."""
    MCQ = "mcq"
    TRUE_FALSE = "true_false"
    MULTIPLE_SELECT = "multiple_select"
    MATCHING = "matching"
    ORDERING = "ordering"
    FILL_IN_BLANK = "fill_in_blank"
    OPEN_ENDED = "open_ended"
    SCENARIO = "scenario"

    @classmethod
    def parse(cls, value: Any) -> Optional['QuestionType']:
        """
        Map the loose spellings a generator uses onto a question type.

        Returns None for unrecognized values.
        """
        if isinstance(value, cls):
            return value
        if not isinstance(value, str):
            return None
        key = value.strip().lower()
        for ch in ("-", "/", " "):
            key = key.replace(ch, "_")
        return _QUESTION_TYPE_ALIASES.get(key)


_QUESTION_TYPE_ALIASES = {
    "mcq": QuestionType.MCQ,
    "multiple_choice": QuestionType.MCQ,
    "single_choice": QuestionType.MCQ,
    "true_false": QuestionType.TRUE_FALSE,
    "truefalse": QuestionType.TRUE_FALSE,
    "boolean": QuestionType.TRUE_FALSE,
    "multiple_select": QuestionType.MULTIPLE_SELECT,
    "multi_select": QuestionType.MULTIPLE_SELECT,
    "multiple_response": QuestionType.MULTIPLE_SELECT,
    "matching": QuestionType.MATCHING,
    "match": QuestionType.MATCHING,
    "ordering": QuestionType.ORDERING,
    "sequence": QuestionType.ORDERING,
    "fill_in_blank": QuestionType.FILL_IN_BLANK,
    "fill_in_the_blank": QuestionType.FILL_IN_BLANK,
    "fill_blank": QuestionType.FILL_IN_BLANK,
    "open_ended": QuestionType.OPEN_ENDED,
    "open": QuestionType.OPEN_ENDED,
    "short_answer": QuestionType.OPEN_ENDED,
    "scenario": QuestionType.SCENARIO,
    "scenario_based": QuestionType.SCENARIO,
}


@dataclass(frozen=True)
class ModuleDescriptor:
    """
    Snapshot of one ingested training module.

    Topic and objective order is whatever ingestion produced; it carries no
    meaning for change detection.
    """

    id: str
    title: str
    topics: Tuple[str, ...] = ()
    objectives: Tuple[str, ...] = ()
    summary: Optional[str] = None
    company_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "topics": list(self.topics),
            "objectives": list(self.objectives),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'ModuleDescriptor':
        return cls(
            id=str(data.get("id", "")),
            title=data.get("title", ""),
            topics=tuple(data.get("topics") or ()),
            objectives=tuple(data.get("objectives") or ()),
            summary=data.get("summary"),
            company_id=data.get("company_id"),
        )


def _resolve_option(options: Sequence[Any], value: Any) -> Any:
    """Turn an option index into the option value; pass other values through."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and 0 <= value < len(options):
        return options[value]
    return value


@dataclass
class Question:
    """
    Base class of the question union.

    Subclasses set ``question_type`` and override :meth:`check` and the
    answer-key serialization.
    """

    text: str
    explanation: Optional[str] = None

    question_type: ClassVar[Optional[QuestionType]] = None

    def __post_init__(self):
        if not isinstance(self.text, str) or not self.text.strip():
            raise AssessmentError("Question text is required")

    def check(self, answer: Any) -> Optional[bool]:
        """
        Grade ``answer`` locally.

        Returns:
            True/False when the answer can be judged locally, None when the
            question must go to rubric grading
        """
        return None

    def _answer_key(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        """Wire representation, also used as the stored JSON shape."""
        data = {
            "type": self.question_type.value if self.question_type else None,
            "question": self.text,
        }
        data.update(self._answer_key())
        if self.explanation:
            data["explanation"] = self.explanation
        return data

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> 'Question':
        """
        Build the right variant for a raw question object.

        Objects without a ``type`` are treated as MCQ, which is the shape the
        generator has always been asked for. Unrecognized types become
        :class:`UnknownQuestion` so they can still be rubric-graded.

        Raises:
            AssessmentError: If the object is not a valid question
        """
        if not isinstance(data, Mapping):
            raise AssessmentError(f"Question must be an object, got {type(data).__name__}")

        raw_type = data.get("type") or data.get("questionType")
        text = data.get("question") or data.get("text") or ""
        explanation = data.get("explanation")

        if raw_type is None:
            question_type = QuestionType.MCQ
        else:
            question_type = QuestionType.parse(raw_type)
            if question_type is None:
                return UnknownQuestion(text=text, explanation=explanation,
                                       raw_type=str(raw_type), payload=dict(data))

        question_cls = QUESTION_CLASSES[question_type]
        try:
            return question_cls.from_payload(text, explanation, data)
        except (TypeError, ValueError, KeyError) as e:
            raise AssessmentError(f"Invalid {question_type.value} question: {e}") from e

    @classmethod
    def from_payload(cls, text: str, explanation: Optional[str], data: Mapping[str, Any]) -> 'Question':
        return cls(text=text, explanation=explanation)


@dataclass
class MultipleChoiceQuestion(Question):
    """Single correct option out of a list."""

    options: List[str] = field(default_factory=list)
    correct_index: int = 0

    question_type: ClassVar[QuestionType] = QuestionType.MCQ

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.options, list) or len(self.options) < 2:
            raise AssessmentError("A choice question needs at least two options")
        if isinstance(self.correct_index, bool) or not isinstance(self.correct_index, int):
            raise AssessmentError("correctIndex must be an integer")
        if not 0 <= self.correct_index < len(self.options):
            raise AssessmentError(f"correctIndex {self.correct_index} out of range")

    def check(self, answer: Any) -> Optional[bool]:
        if answer is None:
            return False
        if isinstance(answer, str) and answer in self.options:
            return answer == self.options[self.correct_index]
        if isinstance(answer, bool) or not isinstance(answer, int):
            return None
        return answer == self.correct_index

    def _answer_key(self) -> Dict[str, Any]:
        return {"options": list(self.options), "correctIndex": self.correct_index}

    @classmethod
    def from_payload(cls, text, explanation, data):
        return cls(text=text, explanation=explanation,
                   options=list(data["options"]), correct_index=data["correctIndex"])


@dataclass
class TrueFalseQuestion(MultipleChoiceQuestion):
    """Two-option choice; generators often send the key as a boolean."""

    question_type: ClassVar[QuestionType] = QuestionType.TRUE_FALSE

    def _boolean_index(self, value: bool) -> int:
        labels = [str(option).strip().lower() for option in self.options]
        target = "true" if value else "false"
        return labels.index(target) if target in labels else (0 if value else 1)

    def check(self, answer: Any) -> Optional[bool]:
        if isinstance(answer, str) and answer not in self.options and answer.strip().lower() in ("true", "false"):
            answer = answer.strip().lower() == "true"
        if isinstance(answer, bool):
            answer = self._boolean_index(answer)
        return super().check(answer)

    @classmethod
    def from_payload(cls, text, explanation, data):
        options = list(data.get("options") or ["True", "False"])
        if "correctIndex" in data:
            correct_index = data["correctIndex"]
        else:
            correct = data["correctAnswer"]
            if isinstance(correct, str):
                correct = correct.strip().lower() == "true"
            correct_index = 0 if correct else 1
        return cls(text=text, explanation=explanation, options=options, correct_index=correct_index)


@dataclass
class MultipleSelectQuestion(Question):
    """Any subset of options may be correct; graded as a set."""

    options: List[str] = field(default_factory=list)
    correct_indices: List[int] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.MULTIPLE_SELECT

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.options, list) or len(self.options) < 2:
            raise AssessmentError("A multiple-select question needs at least two options")
        if not self.correct_indices:
            raise AssessmentError("correctIndices must not be empty")
        for index in self.correct_indices:
            if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(self.options):
                raise AssessmentError(f"correctIndices entry {index!r} out of range")

    def check(self, answer: Any) -> Optional[bool]:
        if answer is None:
            return False
        if not isinstance(answer, (list, tuple, set)):
            return None
        try:
            selected = {_resolve_option(self.options, value) for value in answer}
        except TypeError:
            return None
        expected = {self.options[index] for index in self.correct_indices}
        return selected == expected

    def _answer_key(self) -> Dict[str, Any]:
        return {"options": list(self.options), "correctIndices": list(self.correct_indices)}

    @classmethod
    def from_payload(cls, text, explanation, data):
        return cls(text=text, explanation=explanation,
                   options=list(data["options"]), correct_indices=list(data["correctIndices"]))


@dataclass
class MatchingQuestion(Question):
    """
    Categories each matched to one value.

    ``options`` maps category -> candidate values; ``correct_matches`` maps
    category -> the right value.
    """

    options: Dict[str, List[str]] = field(default_factory=dict)
    correct_matches: Dict[str, str] = field(default_factory=dict)

    question_type: ClassVar[QuestionType] = QuestionType.MATCHING

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.options, dict) or not self.options:
            raise AssessmentError("A matching question needs a category map")
        if not isinstance(self.correct_matches, dict) or not self.correct_matches:
            raise AssessmentError("correctMatches must be a non-empty map")

    def check(self, answer: Any) -> Optional[bool]:
        if answer is None:
            return False
        if not isinstance(answer, Mapping):
            return None
        return all(answer.get(category) == value for category, value in self.correct_matches.items())

    def _answer_key(self) -> Dict[str, Any]:
        return {
            "options": {key: list(values) for key, values in self.options.items()},
            "correctMatches": dict(self.correct_matches),
        }

    @classmethod
    def from_payload(cls, text, explanation, data):
        options = {str(key): list(values) for key, values in dict(data["options"]).items()}
        return cls(text=text, explanation=explanation,
                   options=options, correct_matches=dict(data["correctMatches"]))


@dataclass
class OrderingQuestion(Question):
    """Items to arrange; ``correct_order`` lists the item values in sequence."""

    options: List[str] = field(default_factory=list)
    correct_order: List[str] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.ORDERING

    def __post_init__(self):
        super().__post_init__()
        if not isinstance(self.options, list) or len(self.options) < 2:
            raise AssessmentError("An ordering question needs at least two items")
        self.correct_order = [_resolve_option(self.options, item) for item in self.correct_order]
        if sorted(map(str, self.correct_order)) != sorted(map(str, self.options)):
            raise AssessmentError("correctOrder must be a permutation of the options")

    def check(self, answer: Any) -> Optional[bool]:
        if answer is None:
            return False
        if not isinstance(answer, (list, tuple)):
            return None
        submitted = [_resolve_option(self.options, item) for item in answer]
        return submitted == self.correct_order

    def _answer_key(self) -> Dict[str, Any]:
        return {"options": list(self.options), "correctOrder": list(self.correct_order)}

    @classmethod
    def from_payload(cls, text, explanation, data):
        return cls(text=text, explanation=explanation,
                   options=list(data["options"]), correct_order=list(data["correctOrder"]))


@dataclass
class FillInBlankQuestion(Question):
    """Free-text blank; accepted answers guide the rubric grader."""

    accepted_answers: List[str] = field(default_factory=list)

    question_type: ClassVar[QuestionType] = QuestionType.FILL_IN_BLANK

    def _answer_key(self) -> Dict[str, Any]:
        return {"acceptedAnswers": list(self.accepted_answers)}

    @classmethod
    def from_payload(cls, text, explanation, data):
        accepted = data.get("acceptedAnswers", data.get("correctAnswer", []))
        if isinstance(accepted, str):
            accepted = [accepted]
        return cls(text=text, explanation=explanation, accepted_answers=list(accepted))


@dataclass
class OpenEndedQuestion(Question):
    """Free-form answer judged against an optional rubric."""

    rubric: Optional[str] = None

    question_type: ClassVar[QuestionType] = QuestionType.OPEN_ENDED

    def _answer_key(self) -> Dict[str, Any]:
        return {"rubric": self.rubric} if self.rubric else {}

    @classmethod
    def from_payload(cls, text, explanation, data):
        return cls(text=text, explanation=explanation,
                   rubric=data.get("rubric") or data.get("sampleAnswer"))


@dataclass
class ScenarioQuestion(Question):
    """A workplace scenario with an open response, optionally offering choices."""

    scenario: Optional[str] = None
    options: List[str] = field(default_factory=list)
    rubric: Optional[str] = None

    question_type: ClassVar[QuestionType] = QuestionType.SCENARIO

    def _answer_key(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.scenario:
            data["scenario"] = self.scenario
        if self.options:
            data["options"] = list(self.options)
        if self.rubric:
            data["rubric"] = self.rubric
        return data

    @classmethod
    def from_payload(cls, text, explanation, data):
        return cls(text=text, explanation=explanation, scenario=data.get("scenario"),
                   options=list(data.get("options") or []), rubric=data.get("rubric"))


@dataclass
class UnknownQuestion(Question):
    """A question whose type this service does not recognize; always rubric-graded."""

    raw_type: str = ""
    payload: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.payload)


QUESTION_CLASSES: Dict[QuestionType, Type[Question]] = {
    QuestionType.MCQ: MultipleChoiceQuestion,
    QuestionType.TRUE_FALSE: TrueFalseQuestion,
    QuestionType.MULTIPLE_SELECT: MultipleSelectQuestion,
    QuestionType.MATCHING: MatchingQuestion,
    QuestionType.ORDERING: OrderingQuestion,
    QuestionType.FILL_IN_BLANK: FillInBlankQuestion,
    QuestionType.OPEN_ENDED: OpenEndedQuestion,
    QuestionType.SCENARIO: ScenarioQuestion,
}


def questions_to_dicts(questions: Sequence[Question]) -> List[Dict[str, Any]]:
    return [question.to_dict() for question in questions]


def questions_from_dicts(items: Sequence[Mapping[str, Any]]) -> List[Question]:
    """Rebuild a stored question set; a stored set is trusted, so errors propagate."""
    return [Question.from_dict(item) for item in items]


def _now() -> datetime.datetime:
    return datetime.datetime.utcnow()


@dataclass
class AssessmentRecord:
    """
    A persisted question set.

    Baseline records are keyed by company and carry the content fingerprint
    they were generated against; module records are keyed by module and
    learning-style variant.
    """

    assessment_type: AssessmentType
    questions: List[Question]
    company_id: Optional[str] = None
    module_id: Optional[str] = None
    variant: Optional[str] = None
    fingerprint: Optional[str] = None
    training_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime.datetime = field(default_factory=_now)
    updated_at: datetime.datetime = field(default_factory=_now)

    def __post_init__(self):
        if isinstance(self.assessment_type, str):
            self.assessment_type = AssessmentType(self.assessment_type)
        if self.assessment_type is AssessmentType.MODULE and not self.module_id:
            raise AssessmentError("Module assessments require a module_id")
        if self.assessment_type is AssessmentType.BASELINE and not self.company_id:
            raise AssessmentError("Baseline assessments require a company_id")

    @property
    def scope_key(self) -> Tuple[str, ...]:
        """The uniqueness key of this record."""
        if self.assessment_type is AssessmentType.MODULE:
            return (self.assessment_type.value, self.module_id, self.variant or "")
        return (self.assessment_type.value, self.company_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.assessment_type.value,
            "company_id": self.company_id,
            "module_id": self.module_id,
            "variant": self.variant,
            "questions": questions_to_dicts(self.questions),
            "fingerprint": self.fingerprint,
            "training_id": self.training_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class SubmissionRecord:
    """
    One employee attempt at an assessment.

    ``assessment_type`` is copied from the assessment so the store can keep
    module attempts unique per (employee, assessment).
    """

    employee_id: str
    assessment_id: str
    answers: List[Any]
    score: int
    max_score: int
    feedback: str = ""
    question_feedback: List[str] = field(default_factory=list)
    assessment_type: Optional[AssessmentType] = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime.datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "assessment_id": self.assessment_id,
            "answers": self.answers,
            "score": self.score,
            "max_score": self.max_score,
            "feedback": self.feedback,
            "question_feedback": list(self.question_feedback),
            "assessment_type": self.assessment_type.value if self.assessment_type else None,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class LearningPlan:
    """A generated study plan for an employee."""

    employee_id: str
    body: Dict[str, Any]
    assessment_hash: str
    status: PlanStatus = PlanStatus.ASSIGNED
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime.datetime = field(default_factory=_now)
    updated_at: datetime.datetime = field(default_factory=_now)

    def __post_init__(self):
        if isinstance(self.status, str):
            self.status = PlanStatus(self.status)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "plan": self.body,
            "status": self.status.value,
            "assessment_hash": self.assessment_hash,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class LearningStyleProfile:
    """Survey answers and the resulting learning-style classification."""

    employee_id: str
    answers: List[int]
    style: Optional[LearningStyle] = None
    analysis: Optional[str] = None
    created_at: datetime.datetime = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "employee_id": self.employee_id,
            "learning_style": self.style.value if self.style else None,
            "analysis": self.analysis,
        }


@dataclass
class QuizResult:
    """What the cache controller hands back to callers."""

    assessment_id: str
    questions: List[Question]
    source: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quiz": questions_to_dicts(self.questions),
            "assessmentId": self.assessment_id,
            "source": self.source,
        }


@dataclass
class GradeResult:
    """Outcome of grading one submission."""

    score: int
    max_score: int
    per_question_correct: List[bool]
    explanations: List[str]
    delegated: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "maxScore": self.max_score,
            "perQuestion": list(self.per_question_correct),
            "explanations": list(self.explanations),
        }
