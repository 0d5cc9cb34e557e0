from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from core.models import Level
from core.session_controller import SessionController
from web.backend.deps import get_controller

router = APIRouter()


class EnergyRequest(BaseModel):
    energy: Level


class BrainDumpRequest(BaseModel):
    text: str = Field(default="", max_length=20000)


def _reply(controller: SessionController, accepted: bool) -> Dict[str, Any]:
    return {"accepted": accepted, "state": controller.to_dict()}


@router.get("/state")
async def get_state(controller: SessionController = Depends(get_controller)):
    return controller.to_dict()


@router.post("/energy")
async def set_energy(req: EnergyRequest, controller: SessionController = Depends(get_controller)):
    return _reply(controller, controller.set_energy(req.energy))


@router.post("/brain-dump/start")
async def start_brain_dump(controller: SessionController = Depends(get_controller)):
    return _reply(controller, controller.start_brain_dump())


@router.post("/brain-dump")
def submit_brain_dump(req: BrainDumpRequest, controller: SessionController = Depends(get_controller)):
    if not req.text.strip():
        raise HTTPException(status_code=400, detail="text must not be empty")
    # Blocking model call, so a plain def: FastAPI runs it in the threadpool.
    return _reply(controller, controller.submit_brain_dump(req.text))


@router.post("/start-day")
async def start_day(controller: SessionController = Depends(get_controller)):
    return _reply(controller, controller.start_day())


@router.post("/back")
async def back(controller: SessionController = Depends(get_controller)):
    return _reply(controller, controller.back())


@router.post("/poll")
async def poll(controller: SessionController = Depends(get_controller)):
    """Called by the celebration screen until it moves on."""
    return _reply(controller, controller.poll())
