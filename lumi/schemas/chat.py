from datetime import datetime
from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel

from .command import ActionCommand, CommandOutcome
from .goal import Goal

ChatRole = Literal["system", "user", "assistant"]


class ConversationPhase(str, Enum):
    ONBOARDING = "onboarding"
    COMPANION = "companion"
    WITNESS = "witness"


class ChatMessage(BaseModel):
    id: str
    role: ChatRole
    content: str
    created_at: datetime
    linked_goal_id: Optional[str] = None

    def api_format(self) -> dict:
        return {"role": self.role, "content": self.content}


class ErrorCard(BaseModel):
    kind: str
    message: str
    missing: Optional[str] = None
    retryable: bool = True


class TurnResult(BaseModel):
    phase: ConversationPhase
    reply: str
    display_text: str
    goal: Optional[Goal] = None
    command: Optional[ActionCommand] = None
    outcome: Optional[CommandOutcome] = None
    error: Optional[ErrorCard] = None
