"""
Plan Editor for Momentum.

Local, synchronous edits to the ordered task list. Every function returns a
new list and leaves its input untouched; bad indices or unknown ids are
no-ops rather than errors.
"""
from dataclasses import replace
from typing import Dict, List, Sequence

from core.ai_schemas import RemoteTask
from core.models import Level, Task, TaskCategory, TaskStatus, new_id, positive_minutes

UP = "up"
DOWN = "down"


def move_task(tasks: Sequence[Task], index: int, direction: str) -> List[Task]:
    """Swap the task at *index* with its neighbour in *direction* ("up" or "down")."""
    result = list(tasks)
    if direction == UP:
        target = index - 1
    elif direction == DOWN:
        target = index + 1
    else:
        return result

    if not (0 <= index < len(result)) or not (0 <= target < len(result)):
        return result

    result[index], result[target] = result[target], result[index]
    return result


def adjust_time(tasks: Sequence[Task], task_id: str, delta_minutes: int) -> List[Task]:
    """Add *delta_minutes* to the matching task's estimate, never going below 1."""
    return [
        replace(t, estimated_minutes=max(1, t.estimated_minutes + int(delta_minutes)))
        if t.id == task_id else t
        for t in tasks
    ]


def delete_task(tasks: Sequence[Task], task_id: str) -> List[Task]:
    return [t for t in tasks if t.id != task_id]


def total_duration(tasks: Sequence[Task]) -> int:
    return sum(t.estimated_minutes for t in tasks)


def format_total(minutes: int) -> str:
    """Plan length as shown in review, e.g. '~1h 25m'."""
    return f"~{minutes // 60}h {minutes % 60}m"


def index_of(tasks: Sequence[Task], task_id: str) -> int:
    """Position of *task_id*, or -1."""
    for i, t in enumerate(tasks):
        if t.id == task_id:
            return i
    return -1


def reconcile_tasks(current: Sequence[Task], remote: Sequence[RemoteTask]) -> List[Task]:
    """
    Merge a model-rewritten plan with the local one.

    The id is the only key. A remote task whose id exists locally keeps the
    local completion status and description, whatever the model sent for
    those. Anything else is a new task: fresh id when none was given,
    pending, no description. Output order is the remote order. An id the
    model repeats is only honoured the first time.
    """
    existing: Dict[str, Task] = {t.id: t for t in current}
    merged: List[Task] = []
    seen = set()

    for item in remote:
        item_id = item.id if item.id not in seen else None
        previous = existing.get(item_id) if item_id else None
        if previous is not None:
            merged.append(Task(
                id=previous.id,
                title=item.title,
                category=item.category or previous.category,
                estimated_minutes=positive_minutes(item.estimated_minutes, previous.estimated_minutes),
                energy_level=item.energy_level or previous.energy_level,
                priority=item.priority or previous.priority,
                description=previous.description,
                status=previous.status,
                micro_steps=previous.micro_steps,
            ))
        else:
            merged.append(Task(
                id=item_id or new_id(),
                title=item.title,
                category=item.category or TaskCategory.OTHER,
                estimated_minutes=positive_minutes(item.estimated_minutes),
                energy_level=item.energy_level or Level.MEDIUM,
                priority=item.priority or Level.MEDIUM,
                description=None,
                status=TaskStatus.PENDING,
            ))
        seen.add(merged[-1].id)

    return merged
