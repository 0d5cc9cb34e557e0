from typing import Any, Dict, Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core import plan_editor
from core.config_manager import config
from core.session_controller import SessionController
from web.backend.deps import get_controller

router = APIRouter()


class MoveRequest(BaseModel):
    index: int
    direction: Literal["up", "down"]


class AdjustTimeRequest(BaseModel):
    task_id: str
    delta: int = Field(default_factory=lambda: config.TIME_ADJUST_STEP)


class RefineRequest(BaseModel):
    feedback: str = Field(default="", max_length=5000)


def _plan(controller: SessionController) -> Dict[str, Any]:
    tasks = controller.tasks
    total = plan_editor.total_duration(tasks)
    return {
        "tasks": [t.to_dict() for t in tasks],
        "totalMinutes": total,
        "totalDisplay": plan_editor.format_total(total),
        "aiMessage": controller.state.ai_message,
        "processing": controller.state.processing,
        "timeAdjustStep": config.TIME_ADJUST_STEP,
    }


@router.get("/")
async def get_plan(controller: SessionController = Depends(get_controller)):
    return _plan(controller)


@router.post("/move")
async def move_task(req: MoveRequest, controller: SessionController = Depends(get_controller)):
    accepted = controller.move_task(req.index, req.direction)
    return {"accepted": accepted, **_plan(controller)}


@router.post("/adjust-time")
async def adjust_time(req: AdjustTimeRequest, controller: SessionController = Depends(get_controller)):
    accepted = controller.adjust_time(req.task_id, req.delta)
    return {"accepted": accepted, **_plan(controller)}


@router.delete("/{task_id}")
async def delete_task(task_id: str, controller: SessionController = Depends(get_controller)):
    accepted = controller.delete_task(task_id)
    return {"accepted": accepted, **_plan(controller)}


@router.post("/refine")
def refine_plan(req: RefineRequest, controller: SessionController = Depends(get_controller)):
    if not req.feedback.strip():
        raise HTTPException(status_code=400, detail="feedback must not be empty")
    result = controller.refine_plan(req.feedback)
    return {
        "accepted": result is not None,
        "degraded": bool(result and result.degraded),
        **_plan(controller),
    }
