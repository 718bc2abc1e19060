import asyncio
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, TypeVar

MAX_TRACES = 100

T = TypeVar("T")


class Telemetry:
    """Bounded audit log of AI turns and the state mutations they caused."""

    def __init__(self, max_traces: int = MAX_TRACES) -> None:
        self._traces: List[Dict[str, Any]] = []
        self._lock = asyncio.Lock()
        self._max_traces = max_traces

    async def _with_storage_lock(self, task: Callable[[], Awaitable[T]]) -> T:
        async with self._lock:
            return await task()

    async def _save_traces(self, traces: List[Dict[str, Any]]) -> None:
        trimmed = sorted(traces, key=lambda trace: trace["ts"], reverse=True)[: self._max_traces]
        self._traces.clear()
        self._traces.extend(trimmed)

    async def record(self, params: Dict[str, Any]) -> str:
        async def _task() -> str:
            trace_id = uuid.uuid4().hex[:12]
            now_ms = int(time.time() * 1000)
            traces = list(self._traces)
            traces.insert(
                0,
                {
                    "id": trace_id,
                    "ts": now_ms,
                    "phaseBefore": params["phaseBefore"],
                    "phaseAfter": params.get("phaseAfter", params["phaseBefore"]),
                    "userIntent": params.get("userIntent"),
                    "transport": params.get("transport"),
                    "pipeline": params.get("pipeline"),
                    "action": params.get("action"),
                    "applied": params.get("applied"),
                    "reason": params.get("reason"),
                    "error": params.get("error"),
                    "latencyMs": now_ms - params.get("startedAt", now_ms),
                },
            )
            await self._save_traces(traces)
            return trace_id

        return await self._with_storage_lock(_task)

    async def update(self, trace_id: str, patch: Dict[str, Any]) -> None:
        async def _task() -> None:
            next_traces = [{**trace, **patch} if trace.get("id") == trace_id else trace for trace in self._traces]
            await self._save_traces(next_traces)

        await self._with_storage_lock(_task)

    async def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        async with self._lock:
            traces = list(self._traces)
        return traces[:limit] if isinstance(limit, int) else traces
