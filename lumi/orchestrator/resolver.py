"""Fuzzy key resolution of raw model payloads onto typed models.

Every field has an ordered alias chain. The first alias that is present with a
value of the expected type wins; a required field missing under every alias
raises ``SchemaResolutionError`` naming the aliases tried.
"""

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple, Union

from ..errors import SchemaResolutionError
from ..schemas.blueprint import Blueprint, PhaseSpec
from ..schemas.command import ActionCommand, ActionKind
from ..schemas.goal import DEFAULT_COLOR_TAG, DEFAULT_TASK_DETAIL, DEFAULT_TASK_LABEL

TITLE_ALIASES: Tuple[str, ...] = ("goal_title", "vision_title", "title")
TOTAL_DAYS_ALIASES: Tuple[str, ...] = ("total_duration", "total_duration_days")
PHASES_ALIASES: Tuple[str, ...] = ("phases",)
PHASE_NAME_ALIASES: Tuple[str, ...] = ("phase_name", "name")
DURATION_ALIASES: Tuple[str, ...] = ("duration_days", "days")
TASK_LABEL_ALIASES: Tuple[str, ...] = ("daily_task_label", "task_label", "daily_task_name")
TASK_DETAIL_ALIASES: Tuple[str, ...] = ("daily_task_detail", "task_detail")
COLOR_ALIASES: Tuple[str, ...] = ("bubble_color", "color", "bubble_color_theme")
ACTION_ALIASES: Tuple[str, ...] = ("action",)
NEW_TASK_LABEL_ALIASES: Tuple[str, ...] = ("new_task_label", "newTaskLabel")

# Longest plan accepted from model output; anything larger is treated as malformed.
MAX_PLAN_DAYS = 1000
INTEGER_TEXT = re.compile(r"-?[0-9]+")

_MISSING = object()


def as_text(value: Any) -> Any:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return _MISSING


def as_int(value: Any) -> Any:
    if isinstance(value, bool):
        return _MISSING
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and INTEGER_TEXT.fullmatch(value.strip()):
        return int(value.strip())
    return _MISSING


def as_list(value: Any) -> Any:
    return value if isinstance(value, list) else _MISSING


def resolve_alias(data: Dict[str, Any], aliases: Sequence[str], coerce: Callable[[Any], Any]) -> Any:
    for key in aliases:
        if key not in data:
            continue
        value = coerce(data[key])
        if value is not _MISSING:
            return value
    return _MISSING


def resolve_required(data: Dict[str, Any], field: str, aliases: Sequence[str], coerce: Callable[[Any], Any]) -> Any:
    value = resolve_alias(data, aliases, coerce)
    if value is _MISSING:
        raise SchemaResolutionError(field, aliases)
    return value


def resolve_optional(data: Dict[str, Any], aliases: Sequence[str], coerce: Callable[[Any], Any], default: Any) -> Any:
    value = resolve_alias(data, aliases, coerce)
    return default if value is _MISSING else value


def resolve_phase(data: Any, index: int) -> PhaseSpec:
    prefix = f"phases[{index}]"
    if not isinstance(data, dict):
        raise SchemaResolutionError(prefix, PHASES_ALIASES, reason="not an object")
    duration = resolve_required(data, f"{prefix}.duration_days", DURATION_ALIASES, as_int)
    if duration <= 0:
        raise SchemaResolutionError(f"{prefix}.duration_days", DURATION_ALIASES, reason=f"non-positive value {duration}")
    if duration > MAX_PLAN_DAYS:
        raise SchemaResolutionError(f"{prefix}.duration_days", DURATION_ALIASES, reason=f"{duration} exceeds {MAX_PLAN_DAYS} days")
    return PhaseSpec(
        name=resolve_optional(data, PHASE_NAME_ALIASES, as_text, f"阶段{index + 1}"),
        duration_days=duration,
        task_label=resolve_optional(data, TASK_LABEL_ALIASES, as_text, DEFAULT_TASK_LABEL),
        task_detail=resolve_optional(data, TASK_DETAIL_ALIASES, as_text, DEFAULT_TASK_DETAIL),
        color_tag=resolve_optional(data, COLOR_ALIASES, as_text, DEFAULT_COLOR_TAG),
    )


def resolve_blueprint(data: Dict[str, Any]) -> Blueprint:
    title = resolve_required(data, "title", TITLE_ALIASES, as_text)
    raw_phases = resolve_required(data, "phases", PHASES_ALIASES, as_list)
    if not raw_phases:
        raise SchemaResolutionError("phases", PHASES_ALIASES, reason="empty list")
    total_days = resolve_optional(data, TOTAL_DAYS_ALIASES, as_int, None)
    if total_days is not None and total_days <= 0:
        total_days = None
    if total_days is not None and total_days > MAX_PLAN_DAYS:
        raise SchemaResolutionError("total_days", TOTAL_DAYS_ALIASES, reason=f"{total_days} exceeds {MAX_PLAN_DAYS} days")
    phases = [resolve_phase(raw, index) for index, raw in enumerate(raw_phases)]
    if total_days is None and sum(phase.duration_days for phase in phases) > MAX_PLAN_DAYS:
        raise SchemaResolutionError("phases", PHASES_ALIASES, reason=f"phase durations exceed {MAX_PLAN_DAYS} days")
    return Blueprint(title=title, total_days=total_days, phases=phases)


def resolve_command(data: Dict[str, Any]) -> ActionCommand:
    raw_action = resolve_required(data, "action", ACTION_ALIASES, as_text)
    new_label: Optional[str] = resolve_optional(data, NEW_TASK_LABEL_ALIASES, as_text, None)
    return ActionCommand(action=ActionKind.from_tag(raw_action), raw_action=raw_action, new_task_label=new_label)


@dataclass(frozen=True)
class Resolved:
    blueprint: Blueprint


@dataclass(frozen=True)
class Unresolved:
    field: str
    aliases: Tuple[str, ...]
    reason: str


ResolveResult = Union[Resolved, Unresolved]


def try_resolve_blueprint(data: Dict[str, Any]) -> ResolveResult:
    try:
        return Resolved(resolve_blueprint(data))
    except SchemaResolutionError as error:
        return Unresolved(field=error.field, aliases=error.aliases_tried, reason=error.reason)

