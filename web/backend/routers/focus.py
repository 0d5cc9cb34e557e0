from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from core.session_controller import SessionController, View
from web.backend.deps import get_controller

router = APIRouter()


class TickRequest(BaseModel):
    handle: Optional[int] = None


class TaskRef(BaseModel):
    task_id: str


def _focus(controller: SessionController) -> Dict[str, Any]:
    data = controller.focus.to_dict()
    data["view"] = controller.view.value
    data["hasNext"] = controller.has_next
    data["cursor"] = controller.state.cursor
    return data


@router.get("/")
async def get_focus(controller: SessionController = Depends(get_controller)):
    return _focus(controller)


@router.post("/toggle")
async def toggle_timer(controller: SessionController = Depends(get_controller)):
    handle = controller.toggle_timer()
    return {"handle": handle, **_focus(controller)}


@router.post("/tick")
async def tick(req: TickRequest, controller: SessionController = Depends(get_controller)):
    controller.tick(req.handle)
    return _focus(controller)


@router.post("/breakdown")
def breakdown(controller: SessionController = Depends(get_controller)):
    return {"accepted": controller.request_breakdown(), **_focus(controller)}


@router.post("/steps/{step_id}/toggle")
async def toggle_step(step_id: str, controller: SessionController = Depends(get_controller)):
    return {"accepted": controller.toggle_micro_step(step_id), **_focus(controller)}


@router.post("/coach")
def coach(controller: SessionController = Depends(get_controller)):
    message = controller.request_coaching()
    return {"accepted": message is not None, **_focus(controller)}


@router.post("/coach/clear")
async def clear_coaching(controller: SessionController = Depends(get_controller)):
    return {"accepted": controller.clear_coaching(), **_focus(controller)}


@router.post("/help")
async def toggle_help(controller: SessionController = Depends(get_controller)):
    accepted = controller.view == View.FOCUS
    controller.toggle_help()
    return {"accepted": accepted, **_focus(controller)}


@router.post("/quick-restart")
async def quick_restart(controller: SessionController = Depends(get_controller)):
    handle = controller.quick_restart()
    return {"handle": handle, **_focus(controller)}


@router.post("/complete")
async def complete(req: TaskRef, controller: SessionController = Depends(get_controller)):
    accepted = controller.complete(req.task_id)
    return {"accepted": accepted, "state": controller.to_dict()}


@router.post("/skip")
async def skip(req: TaskRef, controller: SessionController = Depends(get_controller)):
    accepted = controller.skip(req.task_id)
    return {"accepted": accepted, "state": controller.to_dict()}
