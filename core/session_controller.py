"""
Session Controller for Momentum.

Top-level view-state machine:

    DASHBOARD -> BRAIN_DUMP -> PLAN_REVIEW -> FOCUS -> CELEBRATION
                                   ^            |          |
                                   +--- back ---+          +--> FOCUS | DASHBOARD

The controller owns the whole session state (user, task list, cursor,
current view) and the single FocusSession. Every event handler returns
True when it was applied and False when it is not valid in the current
view; invalid events never raise.

Cursor policy: the cursor is a position in the task list, but the id of
the task in focus is remembered. When the list is edited while a focus run
is in progress, the cursor follows that task to its new position. If it
was deleted, the cursor stays put (clamped), which selects its successor.
"""
import random
import threading
import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence

from core.ai_gateway import AIGateway
from core.config_manager import config
from core.focus_session import FocusSession
from core.logger import get_logger
from core.models import Level, PlanResult, Task, TaskStatus, UserState, parse_level
from core import plan_editor
from interface.notifiers.base import BaseNotifier, Notification, NotificationPriority

logger = get_logger("session_controller")


MOTIVATIONAL_QUOTES = [
    "Progress over perfection.",
    "You don't have to feel like it to do it.",
    "One small step is better than no steps.",
    "Action creates motivation, not the other way around.",
    "Be gentle with yourself. You're doing great.",
]


class View(str, Enum):
    DASHBOARD = "DASHBOARD"
    BRAIN_DUMP = "BRAIN_DUMP"
    PLAN_REVIEW = "PLAN_REVIEW"
    FOCUS = "FOCUS"
    CELEBRATION = "CELEBRATION"


@dataclass
class SessionState:
    """Everything the views render, owned by the controller."""
    user: UserState
    tasks: List[Task] = field(default_factory=list)
    cursor: int = 0
    view: View = View.DASHBOARD
    ai_message: str = ""
    in_progress: bool = False  # a focus run over the current plan has started
    focus_task_id: Optional[str] = None
    celebration_until: Optional[float] = None
    celebration_has_next: bool = False
    celebration_quote: Optional[str] = None
    processing: bool = False  # an organize/refine call is in flight


def default_user() -> UserState:
    return UserState(
        name=config.DEFAULT_USER_NAME,
        energy=parse_level(config.DEFAULT_ENERGY),
        streak=config.DEFAULT_STREAK,
    )


class SessionController:
    """Orchestrates views, the plan and the focus cursor for one user."""

    def __init__(
        self,
        gateway: Optional[AIGateway] = None,
        clock: Callable[[], float] = time.time,
        notifiers: Optional[Sequence[BaseNotifier]] = None,
        user: Optional[UserState] = None,
        rng: Optional[random.Random] = None
    ):
        self.gateway = gateway or AIGateway()
        self.clock = clock
        self.notifiers = list(notifiers or [])
        self.rng = rng or random.Random()
        self.focus = FocusSession(clock=clock)
        self.state = SessionState(user=user or default_user())
        self._lock = threading.RLock()
        self._refine_lock = threading.Lock()

    # ── Queries ──────────────────────────────────────────────

    @property
    def view(self) -> View:
        return self.state.view

    @property
    def tasks(self) -> List[Task]:
        return list(self.state.tasks)

    @property
    def current_task(self) -> Optional[Task]:
        tasks = self.state.tasks
        if 0 <= self.state.cursor < len(tasks):
            return tasks[self.state.cursor]
        return None

    @property
    def has_next(self) -> bool:
        return self.state.cursor < len(self.state.tasks) - 1

    # ── Dashboard ────────────────────────────────────────────

    def set_energy(self, energy: Any) -> bool:
        with self._lock:
            if self.state.view != View.DASHBOARD:
                return False
            level = energy if isinstance(energy, Level) else parse_level(energy, default=None)
            if level is None:
                return False
            self.state.user = replace(self.state.user, energy=level)
            return True

    def start_brain_dump(self) -> bool:
        with self._lock:
            if self.state.view != View.DASHBOARD:
                return False
            self.state.view = View.BRAIN_DUMP
            return True

    # ── Brain dump ───────────────────────────────────────────

    def submit_brain_dump(self, raw_text: str) -> bool:
        """Organize the dump and move to plan review with whatever came back."""
        with self._lock:
            if self.state.view != View.BRAIN_DUMP or not (raw_text or "").strip():
                return False
            self.state.processing = True
            energy = self.state.user.energy

        try:
            result = self.gateway.organize(raw_text, energy)
        finally:
            with self._lock:
                self.state.processing = False

        with self._lock:
            self.state.tasks = list(result.tasks)
            self.state.ai_message = result.message
            self.state.cursor = 0
            self.state.in_progress = False
            self.state.focus_task_id = None
            self.focus.bind(None)
            self.state.view = View.PLAN_REVIEW
            logger.info("Plan created with %d task(s)", len(result.tasks))

        if result.degraded:
            self._notify_degraded("Couldn't organize your list", result.message)
        return True

    # ── Plan review ──────────────────────────────────────────

    def update_tasks(self, tasks: Sequence[Task], message: Optional[str] = None) -> None:
        """Single entry point for replacing the plan (manual edits and AI refine)."""
        with self._lock:
            self.state.tasks = list(tasks)
            if message:
                self.state.ai_message = message
            self._follow_focus_task()

    def move_task(self, index: int, direction: str) -> bool:
        with self._lock:
            if self.state.view != View.PLAN_REVIEW:
                return False
            self.update_tasks(plan_editor.move_task(self.state.tasks, index, direction))
            return True

    def adjust_time(self, task_id: str, delta_minutes: int) -> bool:
        with self._lock:
            if self.state.view != View.PLAN_REVIEW:
                return False
            self.update_tasks(plan_editor.adjust_time(self.state.tasks, task_id, delta_minutes))
            return True

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            if self.state.view != View.PLAN_REVIEW:
                return False
            self.update_tasks(plan_editor.delete_task(self.state.tasks, task_id))
            return True

    def refine_plan(self, feedback: str) -> Optional[PlanResult]:
        """
        Ask the model to rework the plan.

        Refine calls are serialized: a second request waits for the first
        and then works on the plan the first one produced.
        """
        with self._lock:
            if self.state.view != View.PLAN_REVIEW or not (feedback or "").strip():
                return None

        with self._refine_lock:
            with self._lock:
                current = list(self.state.tasks)
                self.state.processing = True
            try:
                result = self.gateway.refine(current, feedback)
            finally:
                with self._lock:
                    self.state.processing = False
            self.update_tasks(result.tasks, result.message)

        if result.degraded:
            self._notify_degraded("Couldn't update your plan", result.message)
        return result

    def start_day(self) -> bool:
        with self._lock:
            if self.state.view != View.PLAN_REVIEW or not self.state.tasks:
                return False
            if not self.state.in_progress:
                self.state.cursor = 0
                self.state.in_progress = True
            self.state.cursor = min(self.state.cursor, len(self.state.tasks) - 1)
            self._bind_current()
            self.state.view = View.FOCUS
            return True

    # ── Focus ────────────────────────────────────────────────

    def back(self) -> bool:
        """Return to plan review; tasks and cursor stay as they are."""
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            self.focus.pause()
            self.state.view = View.PLAN_REVIEW
            return True

    def toggle_timer(self) -> Optional[int]:
        with self._lock:
            if self.state.view != View.FOCUS:
                return None
            return self.focus.toggle()

    def tick(self, handle: Optional[int] = None) -> int:
        with self._lock:
            return self.focus.tick(handle)

    def quick_restart(self) -> Optional[int]:
        with self._lock:
            if self.state.view != View.FOCUS:
                return None
            return self.focus.quick_restart()

    def toggle_help(self) -> bool:
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            return self.focus.toggle_help()

    def request_breakdown(self) -> bool:
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            pending = self.focus.begin_breakdown()
        if pending is None:
            return False

        binding, title = pending
        steps = None
        try:
            steps = self.gateway.decompose(title)
        finally:
            with self._lock:
                applied = self.focus.finish_breakdown(binding, steps)
                if applied is not None:
                    task_id = self.focus.task.id
                    self.state.tasks = [
                        replace(t, micro_steps=applied) if t.id == task_id else t
                        for t in self.state.tasks
                    ]
        return applied is not None

    def toggle_micro_step(self, step_id: str) -> bool:
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            return self.focus.toggle_micro_step(step_id)

    def request_coaching(self) -> Optional[str]:
        with self._lock:
            if self.state.view != View.FOCUS:
                return None
            pending = self.focus.begin_coaching()
        if pending is None:
            return None

        binding, title = pending
        message = self.gateway.coach(title, config.COACHING_EMOTION)
        with self._lock:
            return self.focus.finish_coaching(binding, message)

    def clear_coaching(self) -> bool:
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            self.focus.clear_coaching()
            return True

    def complete(self, task_id: str) -> bool:
        """Mark done, bump today's counter and celebrate."""
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            index = plan_editor.index_of(self.state.tasks, task_id)
            if index < 0:
                return False

            task = self.state.tasks[index]
            if not task.is_completed:
                self.state.tasks[index] = replace(task, status=TaskStatus.COMPLETED)
                self.state.user = replace(
                    self.state.user,
                    tasks_completed_today=self.state.user.tasks_completed_today + 1
                )

            self.focus.pause()
            has_next = self.has_next
            dwell = config.CELEBRATION_DWELL_NEXT_SECONDS if has_next else config.CELEBRATION_DWELL_DONE_SECONDS
            self.state.celebration_until = self.clock() + dwell
            self.state.celebration_has_next = has_next
            self.state.celebration_quote = self.rng.choice(MOTIVATIONAL_QUOTES)
            self.state.view = View.CELEBRATION
            logger.info("Task %s completed (%d today)", task_id, self.state.user.tasks_completed_today)
            return True

    def skip(self, task_id: str) -> bool:
        """Mark skipped and move on; no celebration."""
        with self._lock:
            if self.state.view != View.FOCUS:
                return False
            index = plan_editor.index_of(self.state.tasks, task_id)
            if index < 0:
                return False

            task = self.state.tasks[index]
            if not task.is_completed:
                self.state.tasks[index] = replace(task, status=TaskStatus.SKIPPED)
            logger.info("Task %s skipped", task_id)

            if self.has_next:
                self.state.cursor += 1
                self._bind_current()
            else:
                self._finish_plan()
            return True

    # ── Celebration ──────────────────────────────────────────

    def poll(self) -> bool:
        """Leave the celebration screen once its dwell time is over."""
        with self._lock:
            if self.state.view != View.CELEBRATION:
                return False
            if self.state.celebration_until is not None and self.clock() < self.state.celebration_until:
                return False

            self.state.celebration_until = None
            self.state.celebration_quote = None
            if self.state.celebration_has_next and self.has_next:
                self.state.cursor += 1
                self._bind_current()
                self.state.view = View.FOCUS
            else:
                self._finish_plan()
            return True

    # ── Internals ────────────────────────────────────────────

    def _bind_current(self) -> None:
        task = self.current_task
        self.state.focus_task_id = task.id if task else None
        if task is None or self.focus.task is None or self.focus.task.id != task.id:
            self.focus.bind(task)
        else:
            # same task, edited: refresh it without touching the timer
            self.focus.task = task

    def _follow_focus_task(self) -> None:
        if not self.state.in_progress:
            return
        tasks = self.state.tasks
        if not tasks:
            self.state.cursor = 0
            self.state.in_progress = False
            self.state.focus_task_id = None
            self.focus.bind(None)
            if self.state.view == View.FOCUS:
                self.state.view = View.PLAN_REVIEW
            return

        index = plan_editor.index_of(tasks, self.state.focus_task_id) if self.state.focus_task_id else -1
        if index >= 0:
            self.state.cursor = index
        else:
            self.state.cursor = min(self.state.cursor, len(tasks) - 1)
        self._bind_current()

    def _finish_plan(self) -> None:
        self.focus.bind(None)
        self.state.in_progress = False
        self.state.focus_task_id = None
        self.state.view = View.DASHBOARD

    def _notify_degraded(self, title: str, message: str) -> None:
        notification = Notification(title=title, message=message, priority=NotificationPriority.NORMAL)
        for notifier in self.notifiers:
            if notifier.is_available() and not notifier.send(notification):
                logger.warning("Notifier %s failed to deliver '%s'", notifier.get_name(), title)

    def to_dict(self) -> Dict[str, Any]:
        with self._lock:
            s = self.state
            return {
                "view": s.view.value,
                "user": s.user.to_dict(),
                "tasks": [t.to_dict() for t in s.tasks],
                "totalMinutes": plan_editor.total_duration(s.tasks),
                "totalDisplay": plan_editor.format_total(plan_editor.total_duration(s.tasks)),
                "cursor": s.cursor,
                "aiMessage": s.ai_message,
                "processing": s.processing,
                "celebration": {
                    "quote": s.celebration_quote,
                    "hasNext": s.celebration_has_next,
                    "until": s.celebration_until,
                } if s.view == View.CELEBRATION else None,
                "focus": self.focus.to_dict() if s.view == View.FOCUS else None,
            }
