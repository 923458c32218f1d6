"""API tests for the assessment routes, using the in-memory store."""

import pytest
from fastapi.testclient import TestClient

from onboarding.api import create_app
from onboarding.assessments.dependencies import get_generation_client, get_store
from onboarding.tests.conftest import ScriptedGenerationClient, mcq, quiz_payload

SURVEY_ANSWERS = [3] * 40


@pytest.fixture
def generation():
    return ScriptedGenerationClient()


@pytest.fixture
def client(store, generation):
    app = create_app()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_generation_client] = lambda: generation
    return TestClient(app)


def test_root(client):
    response = client.get("/")

    assert response.status_code == 200
    assert "Onboarding" in response.json()["message"]


class TestQuizRoutes:

    def test_module_quiz_generated_then_cached(self, client, generation):
        generation.responses = [quiz_payload(10)]

        first = client.post("/api/assessments/quiz", json={"moduleId": "m1"})
        second = client.post("/api/assessments/quiz", json={"moduleId": "m1"})

        assert first.status_code == 200
        assert first.json()["source"] == "generated"
        assert len(first.json()["quiz"]) == 10
        assert second.json() == {**first.json(), "source": "db"}
        assert generation.calls == 1

    def test_unknown_module_is_404(self, client):
        response = client.post("/api/assessments/quiz", json={"moduleId": "nope"})

        assert response.status_code == 404
        assert response.json()["code"] == "module_not_found"
        assert response.json()["retryable"] is False

    def test_empty_generation_is_retryable_502(self, client, generation, store):
        generation.responses = ["I cannot write a quiz right now."]

        response = client.post("/api/assessments/quiz", json={"moduleId": "m1"})

        assert response.status_code == 502
        assert response.json()["code"] == "empty_generation"
        assert response.json()["retryable"] is True
        assert store.assessments.all() == []

    def test_missing_module_id_is_400(self, client):
        response = client.post("/api/assessments/quiz", json={"moduleId": "  "})

        assert response.status_code == 400
        assert response.json()["code"] == "validation_error"

    def test_baseline_quiz(self, client, generation):
        generation.responses = [quiz_payload(10, "B")]

        first = client.post("/api/assessments/baseline", json={"companyId": "c1", "moduleIds": ["m1", "m2"]})
        reordered = client.post("/api/assessments/baseline", json={"companyId": "c1", "moduleIds": ["m2", "m1"]})

        assert first.status_code == 200
        assert first.json()["source"] == "generated"
        assert reordered.json()["source"] == "db"
        assert reordered.json()["assessmentId"] == first.json()["assessmentId"]

    def test_baseline_requires_module_ids(self, client):
        response = client.post("/api/assessments/baseline", json={"companyId": "c1", "moduleIds": []})

        assert response.status_code == 400
        assert response.json()["details"][0]["location"][-1] == "moduleIds"


class TestGradeRoute:

    def test_preview_grading(self, client, generation):
        generation.default = "Nice work."

        response = client.post("/api/assessments/grade", json={
            "questions": [mcq("Q1?", correct=1), mcq("Q2?", correct=2)],
            "submittedAnswers": [1, 0],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["score"] == 1
        assert body["maxScore"] == 2
        assert body["perQuestion"] == [True, False]
        assert body["feedback"] == "Nice work."
        assert "submissionId" not in body

    def test_recorded_submission(self, client, generation):
        generation.responses = [quiz_payload(10)]
        generation.default = "Keep going."
        quiz = client.post("/api/assessments/quiz", json={"moduleId": "m1"}).json()

        response = client.post("/api/assessments/grade", json={
            "employeeId": "e1",
            "assessmentId": quiz["assessmentId"],
            "submittedAnswers": [i % 4 for i in range(10)],
        })

        assert response.status_code == 200
        assert response.json()["score"] == 10
        assert response.json()["submissionId"]

    def test_unknown_assessment_is_404(self, client):
        response = client.post("/api/assessments/grade", json={
            "employeeId": "e1", "assessmentId": "missing", "submittedAnswers": [0],
        })

        assert response.status_code == 404
        assert response.json()["code"] == "assessment_not_found"

    def test_answers_required(self, client):
        response = client.post("/api/assessments/grade", json={"questions": [mcq("Q1?")]})

        assert response.status_code == 400


class TestLearningRoutes:

    def test_learning_style_drives_quiz_variant(self, client, generation, store):
        generation.responses = [
            {"learning_style": "CR", "analysis": "Learns by doing."},
            quiz_payload(10),
        ]

        style = client.post("/api/learning-style", json={"employeeId": "e1", "answers": SURVEY_ANSWERS})
        quiz = client.post("/api/assessments/quiz", json={"moduleId": "m1", "employeeId": "e1"})

        assert style.json() == {"learningStyle": "CR", "analysis": "Learns by doing."}
        assert quiz.status_code == 200
        assert store.assessments.all()[0].variant == "CR"
        assert "Learner profile:" in generation.prompts[1]

    def test_learning_style_is_submitted_once(self, client, generation):
        generation.default = {"learning_style": "AS", "analysis": "Reads first."}
        client.post("/api/learning-style", json={"employeeId": "e1", "answers": SURVEY_ANSWERS})

        response = client.post("/api/learning-style", json={"employeeId": "e1", "answers": SURVEY_ANSWERS})

        assert response.status_code == 409
        assert response.json()["code"] == "conflict_error"

    def test_learning_style_rejects_short_survey(self, client):
        response = client.post("/api/learning-style", json={"employeeId": "e1", "answers": [3] * 39})

        assert response.status_code == 400

    def test_learning_plan_cached_until_superseded(self, client, generation):
        generation.responses = [{"modules": ["Security Basics"]}, {"modules": ["Expense Policy"]}]

        first = client.post("/api/learning-plan", json={"employeeId": "e1"})
        cached = client.post("/api/learning-plan", json={"employeeId": "e1"})
        retired = client.post("/api/learning-plan/supersede", json={"employeeId": "e1"})
        fresh = client.post("/api/learning-plan", json={"employeeId": "e1"})

        assert first.json() == {"plan": {"modules": ["Security Basics"]}, "source": "generated"}
        assert cached.json()["source"] == "db"
        assert retired.json()["status"] == "superseded"
        assert fresh.json() == {"plan": {"modules": ["Expense Policy"]}, "source": "generated"}

    def test_supersede_without_plan_is_404(self, client):
        response = client.post("/api/learning-plan/supersede", json={"employeeId": "e1"})

        assert response.status_code == 404
