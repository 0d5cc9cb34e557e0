"""
AI Gateway for Momentum.

The only component that talks to the remote structuring service.

Each operation runs in two layers:
1. _request_json / _request_text return a GatewayResult (value or error)
2. the public method collapses a failed result into a fixed fallback

Callers therefore get a total function: organize/refine/decompose/coach
always return a usable value and never raise.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from core.ai_schemas import (
    BREAKDOWN_SCHEMA,
    ORGANIZE_SCHEMA,
    REFINE_SCHEMA,
    BreakdownReply,
    OrganizeReply,
    RefineReply,
)
from core.config_manager import config
from core.exceptions import LLMError, MomentumError, ResponseFormatError
from core.llm_adapter import LLMProvider, get_llm
from core.logger import get_logger
from core.models import (
    Level,
    MicroStep,
    PlanResult,
    Task,
    TaskCategory,
    TaskStatus,
    new_id,
    positive_minutes,
)
from core.plan_editor import reconcile_tasks
from core.utils import parse_llm_json

logger = get_logger("ai_gateway")

T = TypeVar("T")
R = TypeVar("R", bound=BaseModel)


ORGANIZE_FALLBACK_MESSAGE = "I had a little trouble connecting, but let's start with something simple."
REFINE_FALLBACK_MESSAGE = "I couldn't update the plan just now. Try manual editing?"
ORGANIZE_DEFAULT_MESSAGE = "Here's your plan. One thing at a time."
REFINE_DEFAULT_MESSAGE = "I've updated your plan."
COACH_FALLBACK = "Take a deep breath. Just 10 seconds of action counts."
COACH_EMPTY_REPLY = "You've got this. Just one small step."


ORGANIZE_PROMPT = """
The user feels overwhelmed. They have dumped the following list of things to do:
"{raw_text}"

The user's current energy level is: {energy}.

Please organize this list into structured tasks.
Rules:
1. Estimate time (in minutes) for each. Be realistic (e.g., a shower is 15 mins, not 60; writing a report is 45 mins, not 5).
2. Assign a category (HOME, WORK, HEALTH, ERRANDS, SOCIAL, OTHER).
3. Check for LOGICAL DEPENDENCIES (e.g., "Buy groceries" must happen before "Cook dinner", "Get dressed" before "Go out").
4. Sort them logically. Quick wins first build momentum, but respect dependencies.
5. Assign the energy level required (high, medium, low) and a priority (high, medium, low).
6. Provide a short, encouraging 1-sentence message.

Return ONLY a JSON object with "tasks" and "message".
"""

REFINE_PROMPT = """
You are a personal organizer.
Current Plan (JSON): {plan_json}

User Feedback/Complaint: "{feedback}"

Please modify the plan to address the user's feedback.
- If they want to reorder, change the order.
- If they disagree with times, update estimatedMinutes.
- If they want to group things differently, do that.
- Keep the IDs the same for existing tasks.
- You can add new tasks if the feedback implies it.
- Return the full updated list.

Return ONLY a JSON object with "tasks" and "message".
"""

BREAKDOWN_PROMPT = """
The user is procrastinating on this task: "{task_title}".
Break it down into 3-5 incredibly small, non-threatening micro-steps.
Each step should take less than 5 minutes.
The first step should be laughably easy (e.g., "Stand up", "Open the laptop").

Return ONLY a JSON object with "steps".
"""

COACH_PROMPT = """
User is stuck on "{task_title}" and feels "{emotion}".
Act as a compassionate, non-judgmental life coach.
Give one short paragraph (2-3 sentences) of advice to help them move just one inch forward.
Focus on "starting" not "finishing".
"""


@dataclass
class GatewayResult(Generic[T]):
    """Outcome of one remote call before fallbacks are applied."""
    value: Optional[T] = None
    error: Optional[MomentumError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def grounding_task() -> Task:
    """The single task handed out when a brain dump cannot be organized."""
    return Task(
        id=new_id(),
        title="Take a deep breath",
        category=TaskCategory.HEALTH,
        estimated_minutes=2,
        energy_level=Level.LOW,
        priority=Level.HIGH,
        description="Let's just center ourselves before starting.",
        status=TaskStatus.PENDING,
    )


def fallback_steps() -> List[MicroStep]:
    return [
        MicroStep(id=new_id(), title="Just do 1 minute of it", duration_minutes=1),
        MicroStep(id=new_id(), title="See how you feel", duration_minutes=1),
    ]


class AIGateway:
    """Boundary around the text-generation service."""

    def __init__(
        self,
        llm: Optional[LLMProvider] = None,
        profile_name: Optional[str] = None,
        max_retries: Optional[int] = None
    ):
        self._llm = llm
        self.profile_name = profile_name
        self.max_retries = config.LLM_MAX_RETRIES if max_retries is None else max(0, int(max_retries))

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = get_llm(self.profile_name)
        return self._llm

    # ── Public, total operations ─────────────────────────────

    def organize(self, raw_text: str, energy: Any) -> PlanResult:
        """Turn a brain dump into an ordered task list plus an encouraging message."""
        energy_value = getattr(energy, "value", energy)
        logger.info("Organizing brain dump (%d chars, energy=%s)", len(raw_text), energy_value)

        result = self._request_json(
            "organize",
            ORGANIZE_PROMPT.format(raw_text=raw_text, energy=energy_value),
            ORGANIZE_SCHEMA,
            OrganizeReply,
            temperature=config.ORGANIZE_TEMPERATURE,
        )
        if not result.ok:
            return PlanResult(tasks=[grounding_task()], message=ORGANIZE_FALLBACK_MESSAGE, degraded=True)

        reply = result.value
        tasks = [
            Task(
                id=new_id(),
                title=item.title,
                category=item.category,
                estimated_minutes=positive_minutes(item.estimated_minutes),
                energy_level=item.energy_level,
                priority=item.priority or Level.MEDIUM,
                description=item.description,
                status=TaskStatus.PENDING,
            )
            for item in reply.tasks
        ]
        return PlanResult(tasks=tasks, message=reply.message or ORGANIZE_DEFAULT_MESSAGE)

    def refine(self, current_tasks: Sequence[Task], feedback: str) -> PlanResult:
        """Rewrite the plan according to free-form feedback, keeping local flags by id."""
        logger.info("Refining plan of %d tasks", len(current_tasks))
        plan_json = json.dumps(
            [
                {
                    "title": t.title,
                    "duration": t.estimated_minutes,
                    "category": t.category.value,
                    "id": t.id,
                }
                for t in current_tasks
            ],
            ensure_ascii=False,
        )

        result = self._request_json(
            "refine",
            REFINE_PROMPT.format(plan_json=plan_json, feedback=feedback),
            REFINE_SCHEMA,
            RefineReply,
            temperature=config.ORGANIZE_TEMPERATURE,
        )
        if not result.ok:
            return PlanResult(tasks=list(current_tasks), message=REFINE_FALLBACK_MESSAGE, degraded=True)

        reply = result.value
        return PlanResult(
            tasks=reconcile_tasks(current_tasks, reply.tasks),
            message=reply.message or REFINE_DEFAULT_MESSAGE,
        )

    def decompose(self, task_title: str) -> List[MicroStep]:
        """Break a task into 3-5 tiny steps."""
        logger.info("Breaking down task: %s", task_title)
        result = self._request_json(
            "decompose",
            BREAKDOWN_PROMPT.format(task_title=task_title),
            BREAKDOWN_SCHEMA,
            BreakdownReply,
            temperature=config.ORGANIZE_TEMPERATURE,
        )
        if not result.ok:
            return fallback_steps()

        return [
            MicroStep(
                id=new_id(),
                title=step.title,
                duration_minutes=positive_minutes(step.duration_minutes),
                is_completed=False,
            )
            for step in result.value.steps
        ]

    def coach(self, task_title: str, emotion: str) -> str:
        """One short paragraph of encouragement for getting started."""
        logger.info("Coaching request for '%s' (%s)", task_title, emotion)
        result = self._request_text(
            "coach",
            COACH_PROMPT.format(task_title=task_title, emotion=emotion),
            temperature=config.COACHING_TEMPERATURE,
        )
        if not result.ok:
            return COACH_FALLBACK
        return result.value or COACH_EMPTY_REPLY

    # ── Result-returning internals ───────────────────────────

    def _generate(
        self,
        prompt: str,
        temperature: float,
        response_schema: Optional[Dict[str, Any]] = None
    ) -> str:
        llm = self.llm
        response = llm.generate(
            prompt=prompt,
            temperature=temperature,
            max_tokens=config.LLM_MAX_TOKENS,
            response_schema=response_schema,
        )
        if not response.success:
            raise LLMError(
                message=response.error or "Generation failed",
                provider=getattr(llm, "provider", None),
                model_name=llm.get_model_name(),
            )
        return response.content or ""

    def _attempts(self) -> int:
        return 1 + self.max_retries

    def _request_json(
        self,
        operation: str,
        prompt: str,
        schema: Dict[str, Any],
        reply_model: Type[R],
        temperature: float
    ) -> GatewayResult[R]:
        error: Optional[MomentumError] = None

        for attempt in range(1, self._attempts() + 1):
            content = ""
            try:
                content = self._generate(prompt, temperature, response_schema=schema)
                data = parse_llm_json(content)
                if data is None:
                    raise ResponseFormatError("Empty or unparsable JSON reply", raw_content=content)
                return GatewayResult(value=reply_model.model_validate(data))
            except ValidationError as e:
                error = ResponseFormatError(f"Reply does not match schema: {e.error_count()} error(s)", raw_content=content)
                logger.warning("%s attempt %d: %s", operation, attempt, error.message)
            except MomentumError as e:
                error = e
                logger.warning("%s attempt %d failed: %s", operation, attempt, e.message)
            except Exception as e:
                error = MomentumError(f"Unexpected gateway failure: {e}")
                logger.error("%s attempt %d crashed", operation, attempt, exc_info=True)

        logger.error("%s fell back after %d attempt(s): %s", operation, self._attempts(), error.message)
        return GatewayResult(error=error)

    def _request_text(self, operation: str, prompt: str, temperature: float) -> GatewayResult[str]:
        error: Optional[MomentumError] = None

        for attempt in range(1, self._attempts() + 1):
            try:
                return GatewayResult(value=self._generate(prompt, temperature).strip())
            except MomentumError as e:
                error = e
                logger.warning("%s attempt %d failed: %s", operation, attempt, e.message)
            except Exception as e:
                error = MomentumError(f"Unexpected gateway failure: {e}")
                logger.error("%s attempt %d crashed", operation, attempt, exc_info=True)

        logger.error("%s fell back after %d attempt(s): %s", operation, self._attempts(), error.message)
        return GatewayResult(error=error)
