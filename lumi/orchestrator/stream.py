"""Server-sent event reassembly for streamed chat completions.

Bytes are buffered until a line terminator, each line is decoded on its own,
and the ``choices[0].delta.content`` strings are concatenated strictly in wire
order. Malformed lines are dropped without aborting the stream.
"""

import json
import logging
from dataclasses import dataclass
from typing import AsyncIterator, List, Optional

from ..errors import DecodeError, EmptyResponseError
from ..schemas.validator import validate_against_schema

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
COMMENT_PREFIX = ":"
DONE_SENTINEL = "[DONE]"


@dataclass(frozen=True)
class DecodedResponse:
    text: str
    chunk_count: int
    transport: Optional[str] = None


def parse_event_payload(payload: str) -> Optional[str]:
    """Return the delta content carried by one event payload, if any."""
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as error:
        raise DecodeError(f"payload is not JSON ({error.msg})") from error
    validation = validate_against_schema("stream_chunk", parsed)
    if not validation["valid"]:
        raise DecodeError("; ".join(validation["errors"]))
    choices = parsed["choices"]
    if not choices:
        return None
    content = (choices[0].get("delta") or {}).get("content")
    return content if isinstance(content, str) else None


class SSELineDecoder:
    def __init__(self) -> None:
        self._buffer = bytearray()
        self.finished = False

    def feed(self, data: bytes) -> List[str]:
        if self.finished:
            return []
        self._buffer.extend(data)
        deltas: List[str] = []
        while not self.finished:
            newline = self._buffer.find(b"\n")
            if newline < 0:
                break
            raw_line = bytes(self._buffer[:newline])
            del self._buffer[: newline + 1]
            delta = self._handle_line(raw_line)
            if delta:
                deltas.append(delta)
        return deltas

    def flush(self) -> List[str]:
        if self.finished or not self._buffer:
            return []
        raw_line = bytes(self._buffer)
        self._buffer.clear()
        delta = self._handle_line(raw_line)
        return [delta] if delta else []

    def _handle_line(self, raw_line: bytes) -> Optional[str]:
        try:
            line = raw_line.rstrip(b"\r").decode("utf-8")
        except UnicodeDecodeError as error:
            logger.warning("Dropping undecodable stream line (%d bytes): %s", len(raw_line), error.reason)
            return None
        if not line.strip() or line.startswith(COMMENT_PREFIX):
            return None
        if not line.startswith(DATA_PREFIX):
            logger.debug("Ignoring non-data stream field: %s", line[:40])
            return None
        payload = line[len(DATA_PREFIX) :].strip()
        if payload == DONE_SENTINEL:
            self.finished = True
            return None
        try:
            return parse_event_payload(payload)
        except DecodeError as error:
            logger.warning("Skipping malformed stream event: %s", error.reason)
            return None


async def iter_deltas(byte_chunks: AsyncIterator[bytes]) -> AsyncIterator[str]:
    decoder = SSELineDecoder()
    async for data in byte_chunks:
        for delta in decoder.feed(data):
            yield delta
        if decoder.finished:
            return
    for delta in decoder.flush():
        yield delta


async def decode_stream(byte_chunks: AsyncIterator[bytes], transport: Optional[str] = None) -> DecodedResponse:
    parts: List[str] = []
    async for delta in iter_deltas(byte_chunks):
        parts.append(delta)
    text = "".join(parts)
    if not text:
        raise EmptyResponseError()
    return DecodedResponse(text=text, chunk_count=len(parts), transport=transport)
