"""
Response schemas for the structuring service.

Two views of the same contract:
- *_SCHEMA dicts are sent with the request to constrain the model output
- the pydantic models validate what actually comes back
"""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from core.models import Level, TaskCategory

_CATEGORIES = [c.value for c in TaskCategory]
_LEVELS = [lvl.value for lvl in Level]


ORGANIZE_SCHEMA = {
    "type": "object",
    "properties": {
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "category": {"type": "string", "enum": _CATEGORIES},
                    "estimatedMinutes": {"type": "number"},
                    "energyLevel": {"type": "string", "enum": _LEVELS},
                    "priority": {"type": "string", "enum": _LEVELS},
                },
                "required": ["title", "category", "estimatedMinutes", "energyLevel"],
            },
        },
        "message": {"type": "string"},
    },
    "required": ["tasks", "message"],
}

REFINE_SCHEMA = {
    "type": "object",
    "properties": {
        "tasks": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "id": {
                        "type": "string",
                        "description": "Reuse the existing id for existing tasks; leave empty for new tasks",
                    },
                    "title": {"type": "string"},
                    "category": {"type": "string", "enum": _CATEGORIES},
                    "estimatedMinutes": {"type": "number"},
                    "energyLevel": {"type": "string", "enum": _LEVELS},
                    "priority": {"type": "string", "enum": _LEVELS},
                },
                "required": ["title", "estimatedMinutes"],
            },
        },
        "message": {
            "type": "string",
            "description": "A brief confirmation of what changed (e.g. 'I moved dinner to the end')",
        },
    },
    "required": ["tasks", "message"],
}

BREAKDOWN_SCHEMA = {
    "type": "object",
    "properties": {
        "steps": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "durationMinutes": {"type": "number"},
                },
                "required": ["title", "durationMinutes"],
            },
        },
    },
    "required": ["steps"],
}


class _Reply(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


def _upper(value):
    return value.strip().upper() if isinstance(value, str) else value


def _lower(value):
    return value.strip().lower() if isinstance(value, str) else value


class RemoteTask(_Reply):
    """A task as the model returns it; fields are optional where refine allows."""
    id: Optional[str] = None
    title: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    estimated_minutes: float = Field(alias="estimatedMinutes", allow_inf_nan=False)
    energy_level: Optional[Level] = Field(default=None, alias="energyLevel")
    priority: Optional[Level] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("title must not be blank")
        return value

    @field_validator("id", mode="before")
    @classmethod
    def _blank_id(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("category", mode="before")
    @classmethod
    def _category_case(cls, value):
        return _upper(value)

    @field_validator("energy_level", "priority", mode="before")
    @classmethod
    def _level_case(cls, value):
        return _lower(value)


class OrganizedTask(RemoteTask):
    category: TaskCategory
    energy_level: Level = Field(alias="energyLevel")


class OrganizeReply(_Reply):
    tasks: List[OrganizedTask] = Field(min_length=1)
    message: str = ""


class RefineReply(_Reply):
    tasks: List[RemoteTask]
    message: str = ""


class RemoteStep(_Reply):
    title: str = Field(min_length=1)
    duration_minutes: float = Field(default=1, alias="durationMinutes", allow_inf_nan=False)


class BreakdownReply(_Reply):
    steps: List[RemoteStep] = Field(min_length=1)
