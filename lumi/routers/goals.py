from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException, Request

from ..orchestrator.chat import ChatService
from ..orchestrator.goals import GoalNotFound, build_snapshot

router = APIRouter(prefix="/goals", tags=["goals"])


def _service(request: Request) -> ChatService:
    return request.app.state.chat_service


@router.get("/active")
async def active_goal(request: Request) -> Dict[str, Any]:
    goal = await _service(request).store.fetch_active_goal()
    if not goal:
        raise HTTPException(status_code=404, detail="no active goal")
    return build_snapshot(goal, _service(request).clock()).model_dump(mode="json")


@router.get("")
async def list_goals(request: Request, archived: Optional[bool] = None) -> List[Dict[str, Any]]:
    goals = await _service(request).store.list_goals(archived=archived)
    return [goal.model_dump(mode="json") for goal in goals]


@router.post("/{goal_id}/tasks/{task_id}/complete")
async def complete_task(goal_id: str, task_id: str, request: Request) -> Dict[str, Any]:
    service = _service(request)
    try:
        goal = await service.complete_task(goal_id, task_id)
    except GoalNotFound as error:
        raise HTTPException(status_code=404, detail=str(error)) from error
    return {"goal": build_snapshot(goal, service.clock()).model_dump(mode="json"), "phase": service.machine.phase.value}
