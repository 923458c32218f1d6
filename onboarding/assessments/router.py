"""
HTTP routes for quizzes, grading, learning plans and learning styles.

Request bodies use the camelCase field names the web client sends. Domain
errors are not caught here; the application's exception handlers turn them
into status codes.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, validator

from onboarding.assessments.cache_controller import AssessmentCacheController
from onboarding.assessments.dependencies import (
    get_cache_controller,
    get_plan_synthesizer,
    get_style_classifier,
    get_submission_service,
)
from onboarding.assessments.learning_plan import LearningPlanSynthesizer
from onboarding.assessments.learning_style import LearningStyleClassifier
from onboarding.assessments.submissions import SubmissionService
from onboarding.common.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


class _CamelModel(BaseModel):
    class Config:
        allow_population_by_field_name = True


def _non_empty(v):
    if v is not None and not v.strip():
        raise ValueError("must not be empty")
    return v


class ModuleQuizRequest(_CamelModel):
    """Request for a module quiz; the variant defaults to the employee's learning style."""
    module_id: str = Field(..., alias="moduleId")
    variant: Optional[str] = None
    employee_id: Optional[str] = Field(None, alias="employeeId")

    _check_module_id = validator("module_id", allow_reuse=True)(_non_empty)

    class Config:
        schema_extra = {"example": {"moduleId": "m1", "employeeId": "e1"}}


class BaselineQuizRequest(_CamelModel):
    company_id: str = Field(..., alias="companyId")
    module_ids: List[str] = Field(..., alias="moduleIds")
    training_id: Optional[str] = Field(None, alias="trainingId")

    _check_company_id = validator("company_id", allow_reuse=True)(_non_empty)

    @validator("module_ids")
    def validate_module_ids(cls, v):
        if not v:
            raise ValueError("moduleIds (array) required")
        return v


class GradeRequest(_CamelModel):
    """Answers to grade; with both ids the attempt is also recorded."""
    questions: List[Dict[str, Any]] = Field(default_factory=list)
    submitted_answers: List[Any] = Field(..., alias="submittedAnswers")
    employee_id: Optional[str] = Field(None, alias="employeeId")
    assessment_id: Optional[str] = Field(None, alias="assessmentId")


class EmployeeRequest(_CamelModel):
    employee_id: str = Field(..., alias="employeeId")

    _check_employee_id = validator("employee_id", allow_reuse=True)(_non_empty)


class LearningStyleRequest(_CamelModel):
    employee_id: str = Field(..., alias="employeeId")
    answers: List[Any]

    _check_employee_id = validator("employee_id", allow_reuse=True)(_non_empty)


@router.post("/assessments/quiz", summary="Get or generate a module quiz")
async def module_quiz(
    request: ModuleQuizRequest,
    controller: AssessmentCacheController = Depends(get_cache_controller),
    classifier: LearningStyleClassifier = Depends(get_style_classifier),
) -> Dict[str, Any]:
    variant = request.variant or await classifier.resolve_variant(request.employee_id)
    result = await controller.get_or_create_module_quiz(request.module_id, variant)
    return result.to_dict()


@router.post("/assessments/baseline", summary="Get or generate a company baseline quiz")
async def baseline_quiz(
    request: BaselineQuizRequest,
    controller: AssessmentCacheController = Depends(get_cache_controller),
) -> Dict[str, Any]:
    result = await controller.get_or_create_baseline_quiz(
        request.company_id, request.module_ids, training_id=request.training_id
    )
    return result.to_dict()


@router.post("/assessments/grade", summary="Grade submitted answers")
async def grade(
    request: GradeRequest,
    service: SubmissionService = Depends(get_submission_service),
) -> Dict[str, Any]:
    if request.employee_id and request.assessment_id:
        outcome = await service.submit(
            request.employee_id,
            request.assessment_id,
            request.submitted_answers,
            questions=request.questions or None,
        )
    else:
        logger.info("Grading without employeeId/assessmentId; attempt is not recorded")
        outcome = await service.preview(request.questions, request.submitted_answers)
    return outcome.to_dict()


@router.post("/learning-plan", summary="Get or generate an employee's learning plan")
async def learning_plan(
    request: EmployeeRequest,
    synthesizer: LearningPlanSynthesizer = Depends(get_plan_synthesizer),
) -> Dict[str, Any]:
    outcome = await synthesizer.synthesize_plan(request.employee_id)
    return outcome.to_dict()


@router.post("/learning-plan/supersede", summary="Retire an employee's assigned plan")
async def supersede_learning_plan(
    request: EmployeeRequest,
    synthesizer: LearningPlanSynthesizer = Depends(get_plan_synthesizer),
) -> Dict[str, Any]:
    plan = await synthesizer.supersede(request.employee_id)
    return {"planId": plan.id, "status": plan.status.value}


@router.post("/learning-style", summary="Submit the learning-style survey")
async def learning_style(
    request: LearningStyleRequest,
    classifier: LearningStyleClassifier = Depends(get_style_classifier),
) -> Dict[str, Any]:
    profile = await classifier.classify(request.employee_id, request.answers)
    return {
        "learningStyle": profile.style.value if profile.style else None,
        "analysis": profile.analysis,
    }
