"""
Tests for the assessment cache controller.

Covers the module quiz lifecycle (hit, miss, re-check, insert race) and the
baseline Absent/Fresh/Stale states.
"""

import json
from typing import Optional
from unittest.mock import AsyncMock

import pytest

from onboarding.assessments.cache_controller import AssessmentCacheController
from onboarding.assessments.generation import GenerationClient
from onboarding.assessments.models import (
    AssessmentRecord,
    AssessmentType,
    ModuleDescriptor,
    MultipleChoiceQuestion,
)
from onboarding.assessments.question_generator import QuizGenerator
from onboarding.assessments.repositories import DuplicateRecordError
from onboarding.assessments.snapshot import normalize
from onboarding.common.error_handling import ErrorCode, GenerationError, NotFoundError, ValidationError
from onboarding.tests.conftest import ScriptedGenerationClient, quiz_payload


def make_controller(store, client):
    return AssessmentCacheController(store, QuizGenerator(client), default_variant="default")


def stored_question(text="Stored?"):
    return MultipleChoiceQuestion(text=text, options=["a", "b"], correct_index=0)


class TestModuleQuiz:

    @pytest.mark.asyncio
    async def test_generates_once_then_serves_from_store(self, store):
        client = ScriptedGenerationClient(quiz_payload(3))
        controller = make_controller(store, client)

        first = await controller.get_or_create_module_quiz("m1")
        second = await controller.get_or_create_module_quiz("m1")

        assert first.source == "generated"
        assert second.source == "db"
        assert second.assessment_id == first.assessment_id
        assert [q.to_dict() for q in second.questions] == [q.to_dict() for q in first.questions]
        assert client.calls == 1
        assert len(store.assessments.all()) == 1

    @pytest.mark.asyncio
    async def test_existing_record_is_returned_without_generation(self, store):
        record = AssessmentRecord(
            assessment_type=AssessmentType.MODULE,
            questions=[stored_question()],
            module_id="m1",
            variant="default",
        )
        await store.assessments.insert(record)
        client = ScriptedGenerationClient()

        result = await make_controller(store, client).get_or_create_module_quiz("m1")

        assert result.assessment_id == record.id
        assert result.source == "db"
        assert result.questions[0].text == "Stored?"
        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_missing_module_is_not_found(self, store):
        client = ScriptedGenerationClient()

        with pytest.raises(NotFoundError) as exc_info:
            await make_controller(store, client).get_or_create_module_quiz("nope")

        assert exc_info.value.code is ErrorCode.MODULE_NOT_FOUND
        assert exc_info.value.status_code == 404
        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_empty_module_id_is_rejected(self, store):
        with pytest.raises(ValidationError):
            await make_controller(store, ScriptedGenerationClient()).get_or_create_module_quiz("")

    @pytest.mark.asyncio
    async def test_empty_generation_persists_nothing(self, store):
        controller = make_controller(store, ScriptedGenerationClient("not json at all"))

        with pytest.raises(GenerationError) as exc_info:
            await controller.get_or_create_module_quiz("m1")

        assert exc_info.value.code is ErrorCode.EMPTY_GENERATION
        assert exc_info.value.retryable
        assert store.assessments.all() == []

    @pytest.mark.asyncio
    async def test_generation_failure_persists_nothing(self, store):
        controller = make_controller(store, ScriptedGenerationClient(GenerationError("timeout")))

        with pytest.raises(GenerationError):
            await controller.get_or_create_module_quiz("m1")

        assert store.assessments.all() == []

    @pytest.mark.asyncio
    async def test_variants_are_cached_separately(self, store):
        client = ScriptedGenerationClient(quiz_payload(2, "D"), quiz_payload(2, "S"))
        controller = make_controller(store, client)

        default = await controller.get_or_create_module_quiz("m1")
        styled = await controller.get_or_create_module_quiz("m1", "CS")

        assert default.assessment_id != styled.assessment_id
        assert client.calls == 2
        assert "Learner profile" not in client.prompts[0]
        assert "Learner profile" in client.prompts[1]

    @pytest.mark.asyncio
    async def test_recheck_discards_generated_set_when_record_appeared(self, store):
        winner = AssessmentRecord(
            assessment_type=AssessmentType.MODULE,
            questions=[stored_question("Winner?")],
            module_id="m1",
            variant="default",
        )

        class RacingClient(GenerationClient):
            """Stores a competing quiz while generating."""

            async def complete(self, prompt: str, system: Optional[str] = None) -> str:
                await store.assessments.insert(winner)
                return json.dumps(quiz_payload(3))

        result = await make_controller(store, RacingClient()).get_or_create_module_quiz("m1")

        assert result.assessment_id == winner.id
        assert result.source == "db"
        assert [q.text for q in result.questions] == ["Winner?"]
        assert len(store.assessments.all()) == 1

    @pytest.mark.asyncio
    async def test_unique_constraint_race_returns_winner(self, store):
        winner = AssessmentRecord(
            assessment_type=AssessmentType.MODULE,
            questions=[stored_question("Winner?")],
            module_id="m1",
            variant="default",
        )
        store.assessments.get_module_assessment = AsyncMock(side_effect=[None, None, winner])
        store.assessments.insert = AsyncMock(
            side_effect=DuplicateRecordError("assessment", ("module", "m1", "default"))
        )
        client = ScriptedGenerationClient(quiz_payload(3))

        result = await make_controller(store, client).get_or_create_module_quiz("m1")

        assert result.assessment_id == winner.id
        assert result.source == "db"
        store.assessments.insert.assert_awaited_once()
        assert store.assessments.get_module_assessment.await_count == 3


class TestBaselineQuiz:

    @pytest.mark.asyncio
    async def test_absent_generates_and_stores_snapshot(self, store, descriptors):
        client = ScriptedGenerationClient(quiz_payload(4))
        controller = make_controller(store, client)

        result = await controller.get_or_create_baseline_quiz("c1", ["m1", "m2"], training_id="t1")

        assert result.source == "generated"
        record = await store.assessments.get_by_id(result.assessment_id)
        assert record.assessment_type is AssessmentType.BASELINE
        assert record.company_id == "c1"
        assert record.training_id == "t1"
        assert record.fingerprint == normalize(descriptors[:2])
        assert "Company security policy" in client.prompts[0]
        assert "How to claim expenses" in client.prompts[0]

    @pytest.mark.asyncio
    async def test_reordered_content_is_a_hit(self, store):
        client = ScriptedGenerationClient(quiz_payload(4))
        controller = make_controller(store, client)
        first = await controller.get_or_create_baseline_quiz("c1", ["m1", "m2"])

        # Re-ingestion produced the same content in a different order
        store.content.put(ModuleDescriptor(
            id="m1",
            title="Security Basics",
            topics=("phishing", "passwords"),
            objectives=("Use a password manager", "Spot phishing"),
            summary="Company security policy",
            company_id="c1",
        ))
        second = await controller.get_or_create_baseline_quiz("c1", ["m2", "m1"])

        assert second.source == "db"
        assert second.assessment_id == first.assessment_id
        assert client.calls == 1
        assert store.assessments.update_count == 0

    @pytest.mark.asyncio
    async def test_stale_content_updates_in_place(self, store, descriptors):
        client = ScriptedGenerationClient(quiz_payload(4, "Old"), quiz_payload(5, "New"))
        controller = make_controller(store, client)
        first = await controller.get_or_create_baseline_quiz("c1", ["m1", "m2"], training_id="t1")

        changed = ModuleDescriptor(
            id="m2",
            title="Expense Policy",
            topics=("receipts", "limits", "travel"),
            objectives=("File an expense report",),
            company_id="c1",
        )
        store.content.put(changed)
        second = await controller.get_or_create_baseline_quiz("c1", ["m1", "m2"], training_id="t2")

        assert second.source == "generated"
        assert second.assessment_id == first.assessment_id
        assert [q.text for q in second.questions][0] == "New1?"
        assert store.assessments.insert_count == 1
        assert store.assessments.update_count == 1

        record = await store.assessments.get_by_id(first.assessment_id)
        assert record.fingerprint == normalize([descriptors[0], changed])
        assert record.training_id == "t2"
        assert len(record.questions) == 5

        third = await controller.get_or_create_baseline_quiz("c1", ["m2", "m1"], training_id="t2")

        assert third.source == "db"
        assert third.assessment_id == first.assessment_id
        assert [q.text for q in third.questions] == [q.text for q in second.questions]
        assert client.calls == 2
        assert store.assessments.update_count == 1

    @pytest.mark.asyncio
    async def test_stale_generation_failure_leaves_record_untouched(self, store):
        client = ScriptedGenerationClient(quiz_payload(4), GenerationError("down"))
        controller = make_controller(store, client)
        first = await controller.get_or_create_baseline_quiz("c1", ["m1"])

        with pytest.raises(GenerationError):
            await controller.get_or_create_baseline_quiz("c1", ["m1", "m2"])

        record = await store.assessments.get_by_id(first.assessment_id)
        assert len(record.questions) == 4
        assert store.assessments.update_count == 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("company_id,module_ids", [("", ["m1"]), ("c1", []), ("c1", None)])
    async def test_missing_inputs_are_rejected(self, store, company_id, module_ids):
        controller = make_controller(store, ScriptedGenerationClient())

        with pytest.raises(ValidationError) as exc_info:
            await controller.get_or_create_baseline_quiz(company_id, module_ids)

        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_other_company_modules_are_not_found(self, store):
        client = ScriptedGenerationClient()

        with pytest.raises(NotFoundError):
            await make_controller(store, client).get_or_create_baseline_quiz("c1", ["m9"])

        assert client.calls == 0

    @pytest.mark.asyncio
    async def test_lost_insert_race_with_same_content_returns_winner(self, store, descriptors):
        winner = AssessmentRecord(
            assessment_type=AssessmentType.BASELINE,
            questions=[stored_question("Winner?")],
            company_id="c1",
            fingerprint=normalize(descriptors[:1]),
        )
        store.assessments.get_latest_baseline = AsyncMock(side_effect=[None, winner])
        store.assessments.insert = AsyncMock(side_effect=DuplicateRecordError("assessment", ("baseline", "c1")))

        result = await make_controller(store, ScriptedGenerationClient(quiz_payload(2))) \
            .get_or_create_baseline_quiz("c1", ["m1"])

        assert result.assessment_id == winner.id
        assert result.source == "db"


class TestScenarios:

    @pytest.mark.asyncio
    async def test_module_quiz_generated_once_with_ten_questions(self, store):
        client = ScriptedGenerationClient(quiz_payload(10))
        controller = make_controller(store, client)

        first = await controller.get_or_create_module_quiz("m1")
        second = await controller.get_or_create_module_quiz("m1")

        records = store.assessments.all()
        assert len(records) == 1
        assert records[0].assessment_type is AssessmentType.MODULE
        assert records[0].module_id == "m1"
        assert len(records[0].questions) == 10
        assert [q.text for q in second.questions] == [q.text for q in first.questions]
        assert client.calls == 1

    @pytest.mark.asyncio
    async def test_baseline_hit_after_topic_reorder(self):
        from onboarding.assessments.memory_repository import create_memory_store

        store = create_memory_store([
            ModuleDescriptor(id="safety", title="Safety", topics=("ppe", "fire"), company_id="c1"),
        ])
        client = ScriptedGenerationClient(quiz_payload(3))
        controller = make_controller(store, client)

        first = await controller.get_or_create_baseline_quiz("c1", ["safety"])
        fingerprint = (await store.assessments.get_by_id(first.assessment_id)).fingerprint

        store.content.put(ModuleDescriptor(id="safety", title="Safety", topics=("fire", "ppe"), company_id="c1"))
        second = await controller.get_or_create_baseline_quiz("c1", ["safety"])

        assert second.source == "db"
        assert (await store.assessments.get_by_id(second.assessment_id)).fingerprint == fingerprint
        assert client.calls == 1
