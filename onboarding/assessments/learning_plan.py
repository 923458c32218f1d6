"""
Learning Plan Synthesizer

Builds a personalized study plan from all of an employee's recorded attempts.
A plan is regenerated only when the attempts changed: the plan row stores a
sha256 over the canonical JSON of the attempts it was generated from, and an
assigned plan with the same hash is returned as is.
"""

import hashlib
import json
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from onboarding.assessments.generation import GenerationClient, parse_json_payload, strip_code_fences
from onboarding.assessments.models import (
    AssessmentType,
    LearningPlan,
    PlanStatus,
    SubmissionRecord,
)
from onboarding.assessments.repositories import DuplicateRecordError, StoreContext
from onboarding.common.error_handling import DatabaseError, NotFoundError, ValidationError, log_error
from onboarding.common.logger import get_logger, log_execution_time

logger = get_logger(__name__)

PLAN_SYSTEM_PROMPT = "You are an expert corporate trainer and instructional designer."

PLAN_PROMPT = """Given the following:
1. All baseline assessment scores and feedback for the employee:
{baseline}
2. All module assessment scores and feedback for the employee:
{modules}
3. The available training modules:
{catalogue}

Generate a personalized JSON learning plan for this employee. The plan should:
- Identify weak areas based on baseline and module scores/feedback
- Match module objectives to weaknesses
- Specify what to study, in what order, and how much time for each
- Output a JSON object with: modules (ordered), objectives, recommended time (hours), and any tips or recommendations

Output only the JSON plan."""


def _submission_summary(submission: SubmissionRecord) -> Dict[str, Any]:
    return {
        "assessment_id": submission.assessment_id,
        "score": submission.score,
        "max_score": submission.max_score,
        "feedback": submission.feedback,
    }


def partition_submissions(
    submissions: List[Tuple[SubmissionRecord, AssessmentType]]
) -> Dict[str, List[Dict[str, Any]]]:
    """Split attempts by the type of the assessment they reference."""
    baseline = [_submission_summary(s) for s, kind in submissions if kind is AssessmentType.BASELINE]
    module = [_submission_summary(s) for s, kind in submissions if kind is not AssessmentType.BASELINE]
    return {"baselineSubmissions": baseline, "moduleSubmissions": module}


def compute_plan_hash(partitioned: Dict[str, List[Dict[str, Any]]]) -> str:
    canonical = json.dumps(partitioned, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def parse_plan(text: str) -> Dict[str, Any]:
    """Parse the generated plan, keeping the raw text when it is not a JSON object."""
    try:
        payload = parse_json_payload(text)
    except ValueError:
        logger.warning("Could not parse plan JSON, storing raw response")
        return {"raw": strip_code_fences(text)}
    if not isinstance(payload, dict):
        logger.warning(f"Plan JSON was a {type(payload).__name__}, storing raw response")
        return {"raw": strip_code_fences(text)}
    return payload


@dataclass
class PlanOutcome:
    plan: LearningPlan
    source: str
    persistence_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"plan": self.plan.body, "source": self.source}
        if self.persistence_error:
            data["persistenceError"] = self.persistence_error
        return data


class LearningPlanSynthesizer:
    """Generates, caches and reassigns learning plans."""

    def __init__(self, store: StoreContext, client: GenerationClient):
        self.store = store
        self.client = client

    @log_execution_time()
    async def synthesize_plan(self, employee_id: str) -> PlanOutcome:
        """
        Return the employee's plan, regenerating it if their attempts changed.

        Raises:
            ValidationError: If employee_id is empty
            GenerationError: If the generation service fails
            DatabaseError: If the attempts or the current plan cannot be read
        """
        if not employee_id:
            raise ValidationError("Missing employeeId")

        submissions = await self.store.submissions.list_for_employee(employee_id)
        partitioned = partition_submissions(submissions)
        plan_hash = compute_plan_hash(partitioned)

        existing = await self.store.plans.get_assigned(employee_id)
        if existing is not None and existing.assessment_hash == plan_hash:
            logger.info(f"Attempts of employee {employee_id} unchanged; returning plan {existing.id}")
            return PlanOutcome(existing, "db")

        logger.info(
            f"Generating plan for employee {employee_id} from "
            f"{len(partitioned['baselineSubmissions'])} baseline and "
            f"{len(partitioned['moduleSubmissions'])} module attempt(s)"
        )
        catalogue = await self.store.content.list_all_descriptors()
        prompt = PLAN_PROMPT.format(
            baseline=json.dumps(partitioned["baselineSubmissions"], indent=2, ensure_ascii=False),
            modules=json.dumps(partitioned["moduleSubmissions"], indent=2, ensure_ascii=False),
            catalogue=json.dumps([module.to_dict() for module in catalogue], indent=2, ensure_ascii=False),
        )
        body = parse_plan(await self.client.complete(prompt, system=PLAN_SYSTEM_PROMPT))

        if existing is not None:
            plan = existing
            plan.body = body
            plan.assessment_hash = plan_hash
            plan.status = PlanStatus.ASSIGNED
        else:
            plan = LearningPlan(employee_id=employee_id, body=body, assessment_hash=plan_hash)

        try:
            stored = await self._store_plan(plan, is_update=existing is not None)
        except DatabaseError as e:
            log_error(e, context={"employee_id": employee_id})
            return PlanOutcome(plan, "generated", persistence_error=e.message)
        return PlanOutcome(stored, "generated")

    async def _store_plan(self, plan: LearningPlan, is_update: bool) -> LearningPlan:
        if is_update:
            logger.info(f"Updating plan {plan.id} of employee {plan.employee_id} in place")
            return await self.store.plans.update(plan)
        try:
            stored = await self.store.plans.insert(plan)
            logger.info(f"Stored new plan {stored.id} for employee {plan.employee_id}")
            return stored
        except DuplicateRecordError:
            current = await self.store.plans.get_assigned(plan.employee_id)
            if current is None:
                raise
            logger.info(f"Plan {current.id} was assigned concurrently; updating it instead")
            current.body = plan.body
            current.assessment_hash = plan.assessment_hash
            return await self.store.plans.update(current)

    async def supersede(self, employee_id: str) -> LearningPlan:
        """
        Retire the employee's assigned plan so the next synthesis creates a new one.

        The old row is kept with status ``superseded``.

        Raises:
            NotFoundError: If the employee has no assigned plan
        """
        if not employee_id:
            raise ValidationError("Missing employeeId")
        current = await self.store.plans.get_assigned(employee_id)
        if current is None:
            raise NotFoundError("learning_plan", employee_id)
        current.status = PlanStatus.SUPERSEDED
        updated = await self.store.plans.update(current)
        logger.info(f"Superseded plan {updated.id} of employee {employee_id}")
        return updated
