from enum import Enum
from typing import Optional

from pydantic import BaseModel


class ActionKind(str, Enum):
    UPDATE_TODAY_TASK = "update_today_task"
    TRIGGER_COMPLETION = "trigger_phase_3_completion"
    RESET_GOAL = "reset_goal"
    UNKNOWN = "unknown"

    @classmethod
    def from_tag(cls, tag: str) -> "ActionKind":
        normalized = (tag or "").strip().lower()
        for kind in cls:
            if kind is not cls.UNKNOWN and kind.value == normalized:
                return kind
        return cls.UNKNOWN


class ActionCommand(BaseModel):
    action: ActionKind
    raw_action: str
    new_task_label: Optional[str] = None


class CommandOutcome(BaseModel):
    action: ActionKind
    raw_action: str
    applied: bool
    reason: str
    goal_id: Optional[str] = None
