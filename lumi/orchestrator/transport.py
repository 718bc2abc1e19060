import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import HTTPError, TransportError
from .stream import DecodedResponse, decode_stream

logger = logging.getLogger(__name__)

Message = Dict[str, str]


def build_request_body(messages: List[Message], model: str, temperature: float = 0.7, max_tokens: int = 1024) -> Dict[str, Any]:
    return {
        "model": model,
        "messages": messages,
        "temperature": temperature,
        "max_tokens": max_tokens,
        "stream": True,
    }


def _error_message(raw: bytes) -> str:
    try:
        parsed = json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError):
        return "Unknown error"
    error = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(error, dict) and isinstance(error.get("message"), str):
        return error["message"]
    return "Unknown error"


class ChatTransport:
    """One streaming chat-completions endpoint with its own credential."""

    def __init__(self, name: str, url: str, api_key: str, timeout: float = 60.0, http_client: Optional[httpx.AsyncClient] = None) -> None:
        self.name = name
        self.url = url
        self.api_key = api_key
        self.timeout = timeout
        self._client = http_client

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "text/event-stream",
        }

    async def complete(self, body: Dict[str, Any]) -> DecodedResponse:
        client = self._client or httpx.AsyncClient(timeout=self.timeout)
        try:
            async with client.stream("POST", self.url, json=body, headers=self._headers()) as response:
                if response.status_code < 200 or response.status_code >= 300:
                    raw = await response.aread()
                    raise HTTPError(response.status_code, _error_message(raw))
                return await decode_stream(response.aiter_bytes(), transport=self.name)
        except httpx.TransportError as error:
            raise TransportError(f"{self.name} transport failed: {error!r}", transport=self.name) from error
        finally:
            if self._client is None:
                await client.aclose()


class CompletionClient:
    def __init__(self, primary: ChatTransport, fallback: Optional[ChatTransport] = None) -> None:
        self.primary = primary
        self.fallback = fallback

    async def complete(self, body: Dict[str, Any]) -> DecodedResponse:
        try:
            return await self.primary.complete(body)
        except TransportError as error:
            if not self.fallback:
                raise
            logger.warning(
                "Primary transport failed, retrying once via %s: %s",
                self.fallback.name,
                error,
                extra={"lumi_transport": self.fallback.name},
            )
        return await self.fallback.complete(body)
