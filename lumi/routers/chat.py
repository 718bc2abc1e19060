from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Request

from ..errors import CommandRejected, EmptyResponseError, HTTPError, LumiError, NotConfiguredError, TransportError
from ..orchestrator.chat import ChatService

router = APIRouter(prefix="/chat", tags=["chat"])


def _service(request: Request) -> ChatService:
    return request.app.state.chat_service


def _raise_http(error: LumiError) -> None:
    if isinstance(error, HTTPError):
        raise HTTPException(status_code=502, detail={"kind": "http_error", "status": error.status, "message": error.message})
    if isinstance(error, (TransportError, NotConfiguredError)):
        raise HTTPException(status_code=503, detail={"kind": type(error).__name__, "message": str(error)})
    if isinstance(error, EmptyResponseError):
        raise HTTPException(status_code=502, detail={"kind": "empty_response", "message": str(error)})
    if isinstance(error, CommandRejected):
        raise HTTPException(status_code=409, detail={"kind": "command_rejected", "message": str(error)})
    raise HTTPException(status_code=502, detail={"kind": type(error).__name__, "message": str(error)})


@router.post("/send")
async def send(body: Dict[str, Any], request: Request) -> Dict[str, Any]:
    text = body.get("text")
    if not isinstance(text, str) or not text.strip():
        raise HTTPException(status_code=400, detail="text required")
    try:
        result = await _service(request).send_message(text)
    except LumiError as error:
        _raise_http(error)
    return result.model_dump(mode="json")


@router.post("/silent")
async def silent(body: Dict[str, Any], request: Request) -> Dict[str, str]:
    trigger = body.get("trigger")
    if not isinstance(trigger, str) or not trigger.strip():
        raise HTTPException(status_code=400, detail="trigger required")
    context: Optional[str] = body.get("context")
    return await _service(request).send_silent_event(trigger.strip(), context or "")


@router.post("/witness-letter")
async def witness_letter(request: Request) -> Dict[str, Any]:
    try:
        result = await _service(request).request_witness_letter()
    except LumiError as error:
        _raise_http(error)
    return result.model_dump(mode="json")


@router.post("/restart")
async def restart(request: Request) -> Dict[str, Any]:
    service = _service(request)
    try:
        await service.restart()
    except CommandRejected as error:
        _raise_http(error)
    return await service.session_state()


@router.get("/session")
async def session(request: Request) -> Dict[str, Any]:
    return await _service(request).session_state()
