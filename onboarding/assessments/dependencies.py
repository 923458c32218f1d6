"""
FastAPI dependencies for the assessment routes.

The store and the generation client live on ``app.state`` and are set at
startup; tests replace them through ``app.dependency_overrides``.
"""

from fastapi import Depends, Request

from onboarding.assessments.cache_controller import AssessmentCacheController
from onboarding.assessments.generation import GenerationClient
from onboarding.assessments.grading import GradingEngine
from onboarding.assessments.learning_plan import LearningPlanSynthesizer
from onboarding.assessments.learning_style import LearningStyleClassifier
from onboarding.assessments.question_generator import QuizGenerator
from onboarding.assessments.repositories import StoreContext
from onboarding.assessments.submissions import SubmissionService


def get_store(request: Request) -> StoreContext:
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise RuntimeError("Store not initialized. Was the application started?")
    return store


def get_generation_client(request: Request) -> GenerationClient:
    client = getattr(request.app.state, "generation_client", None)
    if client is None:
        raise RuntimeError("Generation client not initialized. Was the application started?")
    return client


def get_cache_controller(
    store: StoreContext = Depends(get_store),
    client: GenerationClient = Depends(get_generation_client),
) -> AssessmentCacheController:
    return AssessmentCacheController(store, QuizGenerator(client))


def get_submission_service(
    store: StoreContext = Depends(get_store),
    client: GenerationClient = Depends(get_generation_client),
) -> SubmissionService:
    return SubmissionService(store, GradingEngine(client), client)


def get_plan_synthesizer(
    store: StoreContext = Depends(get_store),
    client: GenerationClient = Depends(get_generation_client),
) -> LearningPlanSynthesizer:
    return LearningPlanSynthesizer(store, client)


def get_style_classifier(
    store: StoreContext = Depends(get_store),
    client: GenerationClient = Depends(get_generation_client),
) -> LearningStyleClassifier:
    return LearningStyleClassifier(store, client)
