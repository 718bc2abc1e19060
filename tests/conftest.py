import json
import pathlib
import sys
from datetime import date
from typing import Any, Callable, Dict, List, Optional, Union

import httpx
import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from lumi.config import Config  # noqa: E402

TODAY = date(2026, 3, 2)
PRIMARY_URL = "https://primary.test/v1/chat/completions"
FALLBACK_URL = "https://fallback.test/v1/chat/completions"


def sse_event(content: Optional[str]) -> bytes:
    delta: Dict[str, Any] = {} if content is None else {"content": content}
    return f"data: {json.dumps({'choices': [{'index': 0, 'delta': delta}]}, ensure_ascii=False)}\n\n".encode("utf-8")


def sse_body(*deltas: str, done: bool = True) -> bytes:
    body = b": keep-alive\n\n" + sse_event(None)
    for delta in deltas:
        body += sse_event(delta)
    if done:
        body += b"data: [DONE]\n\n"
    return body


def split_reply(text: str, size: int = 7) -> List[str]:
    return [text[index : index + size] for index in range(0, len(text), size)]


Step = Union[str, httpx.Response, Callable[[httpx.Request], httpx.Response]]


class ScriptedUpstream:
    """Serves queued assistant replies as SSE streams and records every request."""

    def __init__(self) -> None:
        self.steps: List[Step] = []
        self.requests: List[httpx.Request] = []

    def reply(self, *texts: str) -> "ScriptedUpstream":
        self.steps.extend(texts)
        return self

    def then(self, step: Step) -> "ScriptedUpstream":
        self.steps.append(step)
        return self

    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]

    def hosts(self) -> List[str]:
        return [request.url.host for request in self.requests]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self.steps:
            raise AssertionError(f"Unexpected upstream request to {request.url}")
        step = self.steps.pop(0)
        if isinstance(step, httpx.Response):
            return step
        if callable(step):
            return step(request)
        return httpx.Response(200, content=sse_body(*split_reply(step)), headers={"content-type": "text/event-stream"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def upstream() -> ScriptedUpstream:
    return ScriptedUpstream()


@pytest.fixture
def config() -> Config:
    return Config(
        primary_url=PRIMARY_URL,
        primary_api_key="sk-primary",
        fallback_url=FALLBACK_URL,
        fallback_api_key="sk-fallback",
    )
