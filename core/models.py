"""
Core Data Models for Momentum.
Defines the fundamental data structures: tasks, micro-steps and the user.

Wire format is camelCase (what the views and the model exchange);
Python attributes are snake_case. Unknown keys are ignored, missing keys
take defaults.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class TaskCategory(str, Enum):
    HOME = "HOME"
    WORK = "WORK"
    HEALTH = "HEALTH"
    ERRANDS = "ERRANDS"
    SOCIAL = "SOCIAL"
    OTHER = "OTHER"


class Level(str, Enum):
    """Shared scale for energy level and priority."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class TaskStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    SKIPPED = "skipped"


CATEGORY_EMOJIS = {
    TaskCategory.HOME: "🏠",
    TaskCategory.WORK: "💼",
    TaskCategory.HEALTH: "🧘",
    TaskCategory.ERRANDS: "🛒",
    TaskCategory.SOCIAL: "👋",
    TaskCategory.OTHER: "✨",
}


def new_id() -> str:
    return uuid.uuid4().hex


def parse_category(value: Any, default: TaskCategory = TaskCategory.OTHER) -> TaskCategory:
    try:
        return TaskCategory(str(value).upper())
    except ValueError:
        return default


def parse_level(value: Any, default: Level = Level.MEDIUM) -> Level:
    try:
        return Level(str(value).lower())
    except ValueError:
        return default


def positive_minutes(value: Any, default: int = 1) -> int:
    """Coerce a model-supplied duration to a positive whole number of minutes."""
    try:
        minutes = int(round(float(value)))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(1, minutes)


@dataclass
class MicroStep:
    """A sub-five-minute slice of a task, created by a breakdown request."""
    id: str
    title: str
    duration_minutes: int = 1
    is_completed: bool = False

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "MicroStep":
        return cls(
            id=str(d.get("id") or new_id()),
            title=str(d.get("title", "")),
            duration_minutes=positive_minutes(d.get("durationMinutes", 1)),
            is_completed=bool(d.get("isCompleted", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "durationMinutes": self.duration_minutes,
            "isCompleted": self.is_completed,
        }


@dataclass
class Task:
    """A single, time-estimated item of the day's plan."""
    id: str
    title: str
    category: TaskCategory = TaskCategory.OTHER
    estimated_minutes: int = 15
    energy_level: Level = Level.MEDIUM
    priority: Level = Level.MEDIUM
    description: Optional[str] = None
    status: TaskStatus = TaskStatus.PENDING
    micro_steps: Optional[List[MicroStep]] = None

    @property
    def is_completed(self) -> bool:
        return self.status == TaskStatus.COMPLETED

    @property
    def is_skipped(self) -> bool:
        return self.status == TaskStatus.SKIPPED

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "Task":
        if d.get("isCompleted"):
            status = TaskStatus.COMPLETED
        elif d.get("isSkipped"):
            status = TaskStatus.SKIPPED
        else:
            try:
                status = TaskStatus(d.get("status", TaskStatus.PENDING.value))
            except ValueError:
                status = TaskStatus.PENDING
        steps = d.get("microSteps")
        return cls(
            id=str(d.get("id") or new_id()),
            title=str(d.get("title", "")),
            category=parse_category(d.get("category")),
            estimated_minutes=positive_minutes(d.get("estimatedMinutes", 15), default=15),
            energy_level=parse_level(d.get("energyLevel")),
            priority=parse_level(d.get("priority")),
            description=d.get("description"),
            status=status,
            micro_steps=[MicroStep.from_dict(s) for s in steps] if steps is not None else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "category": self.category.value,
            "emoji": CATEGORY_EMOJIS[self.category],
            "estimatedMinutes": self.estimated_minutes,
            "energyLevel": self.energy_level.value,
            "priority": self.priority.value,
            "status": self.status.value,
            "isCompleted": self.is_completed,
            "isSkipped": self.is_skipped,
        }
        if self.description is not None:
            d["description"] = self.description
        if self.micro_steps is not None:
            d["microSteps"] = [s.to_dict() for s in self.micro_steps]
        return d


@dataclass
class UserState:
    """Single-user profile for the running process."""
    name: str = "Friend"
    energy: Level = Level.MEDIUM
    streak: int = 0
    tasks_completed_today: int = 0

    @property
    def greeting(self) -> str:
        return f"Good morning, {self.name}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "energy": self.energy.value,
            "streak": self.streak,
            "tasksCompletedToday": self.tasks_completed_today,
            "greeting": self.greeting,
        }


@dataclass
class PlanResult:
    """What organize/refine hand back: the task list plus a message for the user."""
    tasks: List[Task] = field(default_factory=list)
    message: str = ""
    degraded: bool = False  # True when the fallback was used
