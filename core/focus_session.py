"""
Focus Session for Momentum.

Runs one task through a countdown with pause/resume, an optional
micro-step checklist and a "stuck?" help panel.

The countdown is anchored to an absolute end time. Remaining time is
always recomputed as end_time - now, never accumulated tick by tick, so a
throttled or suspended ticker cannot make a session run long.

Ticks carry a handle. Pausing, expiring or rebinding invalidates the
current handle; a tick presenting a stale handle is ignored.
"""
import itertools
import math
import time
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from core.config_manager import config
from core.logger import get_logger
from core.models import MicroStep, Task

logger = get_logger("focus_session")

Clock = Callable[[], float]


class TimerState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


def format_time(seconds: int) -> str:
    """Countdown display, e.g. 125 -> '2:05'."""
    seconds = max(0, int(seconds))
    return f"{seconds // 60}:{seconds % 60:02d}"


class FocusSession:
    """Timer and helpers for the task currently in focus."""

    def __init__(self, task: Optional[Task] = None, clock: Clock = time.time):
        self.clock = clock
        self._ids = itertools.count(1)
        self.task: Optional[Task] = None
        self.binding = 0
        self.state = TimerState.IDLE
        self.remaining_seconds = 0
        self.end_time: Optional[float] = None
        self.tick_handle: Optional[int] = None
        self.micro_steps: List[MicroStep] = []
        self.coaching_message: Optional[str] = None
        self.show_help = False
        self.loading_steps = False
        if task is not None:
            self.bind(task)

    # ── Binding ──────────────────────────────────────────────

    def bind(self, task: Optional[Task]) -> None:
        """Attach to a (new) task. Nothing carries over from the previous one."""
        self._stop()
        self.task = task
        self.binding = next(self._ids)
        self.remaining_seconds = task.estimated_minutes * 60 if task else 0
        self.micro_steps = []
        self.coaching_message = None
        self.show_help = False
        self.loading_steps = False
        if task is not None:
            logger.debug("Focus bound to %s (%ds)", task.id, self.remaining_seconds)

    @property
    def total_seconds(self) -> int:
        return self.task.estimated_minutes * 60 if self.task else 0

    @property
    def is_running(self) -> bool:
        return self.state == TimerState.RUNNING

    # ── Timer ────────────────────────────────────────────────

    def start(self) -> Optional[int]:
        """Idle -> Running. Returns the tick handle, or None if there is nothing to run."""
        if self.task is None:
            return None
        if self.is_running:
            return self.tick_handle
        if self.remaining_seconds <= 0:
            return None

        self.end_time = self.clock() + self.remaining_seconds
        self.state = TimerState.RUNNING
        self.tick_handle = next(self._ids)
        return self.tick_handle

    def pause(self) -> None:
        """Running -> Idle; the time left now becomes the new baseline."""
        if not self.is_running:
            return
        self.remaining_seconds = self._remaining_now()
        self._stop()

    def toggle(self) -> Optional[int]:
        if self.is_running:
            self.pause()
            return None
        return self.start()

    def tick(self, handle: Optional[int] = None) -> int:
        """Recompute the time left from the end time. Returns remaining seconds."""
        if not self.is_running:
            return self.remaining_seconds
        if handle is not None and handle != self.tick_handle:
            logger.debug("Ignoring stale tick %s (current %s)", handle, self.tick_handle)
            return self.remaining_seconds

        remaining = self._remaining_now()
        self.remaining_seconds = remaining
        if remaining <= 0:
            logger.info("Timer finished for %s", self.task.id if self.task else None)
            self._stop()
        return self.remaining_seconds

    def quick_restart(self) -> Optional[int]:
        """'Just 1 minute': reset to a short countdown and start right away."""
        if self.task is None:
            return None
        self._stop()
        self.remaining_seconds = config.QUICK_RESTART_SECONDS
        self.show_help = False
        return self.start()

    @property
    def progress(self) -> float:
        total = self.total_seconds
        if total <= 0:
            return 0.0
        return min(1.0, max(0.0, (total - self.remaining_seconds) / total))

    def _remaining_now(self) -> int:
        if self.end_time is None:
            return self.remaining_seconds
        return max(0, math.ceil(self.end_time - self.clock()))

    def _stop(self) -> None:
        self.state = TimerState.IDLE
        self.end_time = None
        self.tick_handle = None

    # ── Micro-steps ──────────────────────────────────────────
    #
    # Each gateway request is split into begin_* (bookkeeping before the
    # call) and finish_* (applying the reply) so an owner can hold its lock
    # around both without holding it across the remote call.

    def request_breakdown(self, gateway) -> Optional[List[MicroStep]]:
        """
        Ask the gateway for micro-steps and load them. The timer is untouched.

        Returns None when the session moved to another task while waiting.
        """
        pending = self.begin_breakdown()
        if pending is None:
            return None
        binding, title = pending
        try:
            steps = gateway.decompose(title)
        except Exception:
            self.finish_breakdown(binding, None)
            raise
        return self.finish_breakdown(binding, steps)

    def begin_breakdown(self) -> Optional[Tuple[int, str]]:
        if self.task is None:
            return None
        self.loading_steps = True
        return self.binding, self.task.title

    def finish_breakdown(self, binding: int, steps: Optional[List[MicroStep]]) -> Optional[List[MicroStep]]:
        if binding != self.binding:
            logger.info("Dropping breakdown for a task that is no longer in focus")
            return None
        self.loading_steps = False
        if steps is None:
            return None
        self.micro_steps = steps
        self.show_help = False
        return steps

    def toggle_micro_step(self, step_id: str) -> bool:
        for step in self.micro_steps:
            if step.id == step_id:
                step.is_completed = not step.is_completed
                return True
        return False

    @property
    def all_steps_done(self) -> bool:
        """True when there is a checklist and every item is ticked."""
        return bool(self.micro_steps) and all(s.is_completed for s in self.micro_steps)

    # ── Help panel ───────────────────────────────────────────

    def request_coaching(self, gateway) -> Optional[str]:
        pending = self.begin_coaching()
        if pending is None:
            return None
        binding, title = pending
        return self.finish_coaching(binding, gateway.coach(title, config.COACHING_EMOTION))

    def begin_coaching(self) -> Optional[Tuple[int, str]]:
        if self.task is None:
            return None
        self.coaching_message = config.COACHING_PLACEHOLDER
        return self.binding, self.task.title

    def finish_coaching(self, binding: int, message: str) -> Optional[str]:
        if binding != self.binding:
            logger.info("Dropping coaching for a task that is no longer in focus")
            return None
        self.coaching_message = message
        return message

    def clear_coaching(self) -> None:
        self.coaching_message = None

    def toggle_help(self) -> bool:
        self.show_help = not self.show_help
        return self.show_help

    def close_help(self) -> None:
        self.show_help = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task": self.task.to_dict() if self.task else None,
            "state": self.state.value,
            "remainingSeconds": self.remaining_seconds,
            "display": format_time(self.remaining_seconds),
            "progress": round(self.progress, 4),
            "tickHandle": self.tick_handle,
            "tickIntervalMs": config.TICK_INTERVAL_MS,
            "microSteps": [s.to_dict() for s in self.micro_steps],
            "allStepsDone": self.all_steps_done,
            "loadingSteps": self.loading_steps,
            "coachingMessage": self.coaching_message,
            "showHelp": self.show_help,
        }
