"""Tolerant extraction of an embedded JSON object from model output.

Candidates are tried in a fixed priority order and the first one that parses
into an object wins:

1. a fenced block labeled ``json`` (any case),
2. any fenced block whose trimmed content is brace-delimited,
3. a brace-balanced scan around the first occurrence of each signal key.
"""

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Sequence, Tuple, Union

logger = logging.getLogger(__name__)

DEFAULT_SIGNAL_KEYS: Tuple[str, ...] = ("goal_title", "vision_title", "title", "action")

LABELED_FENCE = re.compile(r"```\s*json\s*([\s\S]*?)```", re.IGNORECASE)
ANY_FENCE = re.compile(r"```[A-Za-z0-9_+-]*[ \t]*\n?([\s\S]*?)```")
FENCE_MARKER = re.compile(r"```[A-Za-z0-9_+-]*")
TRAILING_COMMA = re.compile(r",\s*([}\]])")
INVISIBLE_CHARS = re.compile("[\ufeff\u200b\u200c\u200d\u2060]")


@dataclass(frozen=True)
class Found:
    text: str
    data: Dict[str, Any]
    strategy: str


@dataclass(frozen=True)
class NotFound:
    attempted: List[str] = field(default_factory=list)

    @property
    def saw_candidate(self) -> bool:
        return bool(self.attempted)


ExtractionResult = Union[Found, NotFound]


def clean_candidate(raw: str) -> str:
    cleaned = FENCE_MARKER.sub("", raw)
    cleaned = INVISIBLE_CHARS.sub("", cleaned)
    cleaned = TRAILING_COMMA.sub(r"\1", cleaned)
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start < 0 or end < start:
        return cleaned.strip()
    return cleaned[start : end + 1]


def _parse(candidate: str, strategy: str, silent: bool) -> Optional[Found]:
    cleaned = clean_candidate(candidate)
    if not (cleaned.startswith("{") and cleaned.endswith("}")):
        return None
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError as error:
        if silent:
            logger.debug("Speculative %s candidate did not parse: %s", strategy, error.msg)
        else:
            logger.warning("Labeled JSON block failed to parse at line %d col %d: %s", error.lineno, error.colno, error.msg)
        return None
    if not isinstance(parsed, dict):
        return None
    return Found(text=cleaned, data=parsed, strategy=strategy)


def _is_escaped(text: str, index: int) -> bool:
    backslashes = 0
    while index - backslashes - 1 >= 0 and text[index - backslashes - 1] == "\\":
        backslashes += 1
    return backslashes % 2 == 1


def find_enclosing_object(text: str, anchor: int) -> Optional[str]:
    """Return the brace-balanced object that encloses ``anchor``."""
    depth = 0
    start = -1
    in_string = False
    for index in range(anchor - 1, -1, -1):
        char = text[index]
        if char == '"' and not _is_escaped(text, index):
            in_string = not in_string
            continue
        if in_string:
            continue
        if char == "}":
            depth += 1
        elif char == "{":
            if depth == 0:
                start = index
                break
            depth -= 1
    if start < 0:
        return None

    depth = 0
    in_string = False
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
            continue
        if char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[start : index + 1]
    return None


def _candidates(text: str, signal_keys: Sequence[str]) -> Iterator[Tuple[str, str, bool]]:
    labeled = LABELED_FENCE.search(text)
    if labeled:
        yield labeled.group(1), "labeled_fence", False

    for match in ANY_FENCE.finditer(text):
        content = match.group(1).strip()
        if content.startswith("{") and content.endswith("}"):
            yield content, "fence", True

    for key in signal_keys:
        anchor = text.find(f'"{key}"')
        if anchor < 0:
            continue
        enclosing = find_enclosing_object(text, anchor)
        if enclosing:
            yield enclosing, f"signal:{key}", True


def extract_payload(
    text: str,
    signal_keys: Sequence[str] = DEFAULT_SIGNAL_KEYS,
    required_keys: Optional[Sequence[str]] = None,
) -> ExtractionResult:
    attempted: List[str] = []
    if not text:
        return NotFound(attempted)
    for candidate, strategy, silent in _candidates(text, signal_keys):
        attempted.append(strategy)
        found = _parse(candidate, strategy, silent)
        if not found:
            continue
        if required_keys and not any(key in found.data for key in required_keys):
            continue
        return found
    return NotFound(attempted)
