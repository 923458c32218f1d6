"""Tests for submission recording."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from onboarding.assessments.grading import GradingEngine
from onboarding.assessments.models import AssessmentRecord, AssessmentType, Question, SubmissionRecord
from onboarding.assessments.repositories import DuplicateRecordError
from onboarding.assessments.submissions import FALLBACK_FEEDBACK, SubmissionService
from onboarding.common.error_handling import (
    DatabaseError,
    ErrorCode,
    GenerationError,
    NotFoundError,
    ValidationError,
)
from onboarding.tests.conftest import ScriptedGenerationClient, mcq


async def seed_assessment(store, assessment_type):
    questions = [Question.from_dict(mcq("Q1", correct=0)), Question.from_dict(mcq("Q2", correct=1))]
    if assessment_type is AssessmentType.MODULE:
        record = AssessmentRecord(assessment_type=assessment_type, questions=questions,
                                  module_id="m1", variant="default")
    else:
        record = AssessmentRecord(assessment_type=assessment_type, questions=questions, company_id="c1")
    return await store.assessments.insert(record)


def make_service(store, client):
    return SubmissionService(store, GradingEngine(client), client)


class TestSubmit:

    @pytest.mark.asyncio
    async def test_module_attempt_is_overwritten_on_retake(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)
        service = make_service(store, ScriptedGenerationClient(default="Keep going!"))

        first = await service.submit("e1", assessment.id, [0, 0])
        second = await service.submit("e1", assessment.id, [0, 1])

        history = await store.submissions.list_for_employee("e1")
        assert len(history) == 1
        record, kind = history[0]
        assert kind is AssessmentType.MODULE
        assert record.id == first.submission.id == second.submission.id
        assert record.score == 2
        assert record.answers == [0, 1]
        assert record.feedback == "Keep going!"

    @pytest.mark.asyncio
    async def test_concurrent_module_retakes_keep_one_row(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)
        service = make_service(store, ScriptedGenerationClient(default="Keep going!"))
        find = store.submissions.find

        async def slow_find(employee_id, assessment_id):
            await asyncio.sleep(0.01)
            return await find(employee_id, assessment_id)

        store.submissions.find = slow_find

        outcomes = await asyncio.gather(
            service.submit("e1", assessment.id, [0, 0]),
            service.submit("e1", assessment.id, [0, 1]),
        )

        history = await store.submissions.list_for_employee("e1")
        assert len(history) == 1
        assert all(outcome.persistence_error is None for outcome in outcomes)
        assert outcomes[0].submission.id == outcomes[1].submission.id == history[0][0].id

    @pytest.mark.asyncio
    async def test_store_rejects_second_module_attempt_row(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)

        def attempt():
            return SubmissionRecord(employee_id="e1", assessment_id=assessment.id, answers=[0, 0],
                                    score=1, max_score=2, assessment_type=AssessmentType.MODULE)

        await store.submissions.insert(attempt())

        with pytest.raises(DuplicateRecordError):
            await store.submissions.insert(attempt())

    @pytest.mark.asyncio
    async def test_baseline_attempts_are_appended(self, store):
        assessment = await seed_assessment(store, AssessmentType.BASELINE)
        service = make_service(store, ScriptedGenerationClient(default="Nice"))

        await service.submit("e1", assessment.id, [0, 0])
        await service.submit("e1", assessment.id, [0, 1])

        history = await store.submissions.list_for_employee("e1")
        assert [record.score for record, _ in history] == [1, 2]
        assert all(kind is AssessmentType.BASELINE for _, kind in history)

    @pytest.mark.asyncio
    async def test_stored_questions_are_used_when_none_submitted(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)

        outcome = await make_service(store, ScriptedGenerationClient(default="ok")).submit(
            "e1", assessment.id, [1, 1]
        )

        assert outcome.grade.score == 1
        assert outcome.grade.max_score == 2

    @pytest.mark.asyncio
    async def test_wire_shape(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)

        outcome = await make_service(store, ScriptedGenerationClient(default="Well done")).submit(
            "e1", assessment.id, [0, 1]
        )
        data = outcome.to_dict()

        assert data["score"] == 2
        assert data["maxScore"] == 2
        assert data["feedback"] == "Well done"
        assert len(data["explanations"]) == 2
        assert "persistenceError" not in data

    @pytest.mark.asyncio
    async def test_feedback_failure_uses_fallback(self, store):
        assessment = await seed_assessment(store, AssessmentType.MODULE)
        client = ScriptedGenerationClient(GenerationError("down"))

        outcome = await make_service(store, client).submit("e1", assessment.id, [0, 1])

        assert outcome.feedback == FALLBACK_FEEDBACK
        assert outcome.submission is not None

    @pytest.mark.asyncio
    async def test_missing_assessment_is_not_found(self, store):
        with pytest.raises(NotFoundError) as exc_info:
            await make_service(store, ScriptedGenerationClient()).submit("e1", "missing", [0])

        assert exc_info.value.code is ErrorCode.ASSESSMENT_NOT_FOUND

    @pytest.mark.asyncio
    @pytest.mark.parametrize("employee_id,assessment_id,answers", [
        ("", "a1", [0]),
        ("e1", "", [0]),
        ("e1", "a1", "not a list"),
    ])
    async def test_invalid_input(self, store, employee_id, assessment_id, answers):
        with pytest.raises(ValidationError):
            await make_service(store, ScriptedGenerationClient()).submit(employee_id, assessment_id, answers)

    @pytest.mark.asyncio
    async def test_persistence_failure_is_reported_not_raised(self, store):
        assessment = await seed_assessment(store, AssessmentType.BASELINE)
        store.submissions.insert = AsyncMock(side_effect=DatabaseError("disk full", operation="insert"))

        outcome = await make_service(store, ScriptedGenerationClient(default="ok")).submit(
            "e1", assessment.id, [0, 1]
        )

        assert outcome.grade.score == 2
        assert outcome.submission is None
        assert outcome.persistence_error == "disk full"
        assert outcome.to_dict()["persistenceError"] == "disk full"


class TestPreview:

    @pytest.mark.asyncio
    async def test_preview_records_nothing(self, store):
        service = make_service(store, ScriptedGenerationClient(default="tips"))

        outcome = await service.preview([mcq("Q1", correct=2)], [2])

        assert outcome.grade.score == 1
        assert outcome.feedback == "tips"
        assert await store.submissions.list_for_employee("e1") == []

    @pytest.mark.asyncio
    async def test_preview_requires_questions(self, store):
        with pytest.raises(ValidationError):
            await make_service(store, ScriptedGenerationClient()).preview([], [])
