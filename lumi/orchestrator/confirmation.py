import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

COMPLETION_VERB = re.compile(
    r"\b(finished|complete[d]?|done|achieved|accomplished|reached)\b|(完成|做完|搞定|达成|实现)",
    re.IGNORECASE,
)
# Scope words that make a completion verb refer to the whole vision.
WHOLE_SCOPE = re.compile(
    r"\b(everything|it all|all of it|all done|the whole|entire|whole (goal|vision|plan|thing)|my (goal|vision|plan)|the (goal|vision|plan))\b"
    r"|(全部|整个|所有|愿景|目标|计划)",
    re.IGNORECASE,
)
# A day's task being done is a check-in, never a goal completion.
DAILY_SCOPE = re.compile(
    r"\b(today'?s?|tonight|this (morning|afternoon|evening))\b|(今天|今日|今晚|今早)",
    re.IGNORECASE,
)
CONFIRMATION_TOPIC = re.compile(
    r"\b(whole|entire|everything|vision|goal|journey|end (the|this|your))\b|(整个|全部|愿景|目标|旅程|结束|毕业)",
    re.IGNORECASE,
)
AFFIRMATIVE = re.compile(
    r"^\s*(yes|yeah|yep|yup|sure|confirm(ed)?|correct|absolutely|of course|definitely|i'?m sure|i am sure)\b"
    r"|^\s*(是的|是啊|是|对的|对啊|对|确认|确定|没错|当然|嗯嗯|嗯|好的)\s*([，,。.!！~～]|$)",
    re.IGNORECASE,
)
NEGATIVE = re.compile(
    r"\b(no|nope|not yet|not really|wait|cancel|don'?t)\b|(不是|还没|没有|不要|算了|等等|不确定)",
    re.IGNORECASE,
)
QUESTION_CLAUSE = re.compile(r"[^。！!.?？\n]*[?？]")


def detect_completion_claim(text: str, goal_title: Optional[str] = None) -> bool:
    """True when the message claims the whole goal is done, not just today's task."""
    if not text or DAILY_SCOPE.search(text) or not COMPLETION_VERB.search(text):
        return False
    title = (goal_title or "").strip().lower()
    if title and title in text.lower():
        return True
    return bool(WHOLE_SCOPE.search(text))


def is_negative(text: str) -> bool:
    return bool(NEGATIVE.search(text or ""))


def is_affirmative(text: str) -> bool:
    return bool(AFFIRMATIVE.search(text or "")) and not is_negative(text)


def question_clauses(text: str) -> List[str]:
    return [clause.strip() for clause in QUESTION_CLAUSE.findall(text or "")]


def asks_completion_question(text: str) -> bool:
    """True when some question in the reply is about finishing or ending the whole vision."""
    return any(CONFIRMATION_TOPIC.search(clause) and not DAILY_SCOPE.search(clause) for clause in question_clauses(text))


def classify_reply(text: str) -> Dict[str, Any]:
    if is_affirmative(text):
        intent = "affirmative"
    elif is_negative(text):
        intent = "negative"
    elif detect_completion_claim(text):
        intent = "completion_claim"
    else:
        intent = "conversational"
    return {"intent": intent, "completionClaim": detect_completion_claim(text)}


@dataclass(frozen=True)
class PendingConfirmation:
    goal_id: str
    question: str
    opened_at: datetime

    @classmethod
    def open(cls, goal_id: str, question: str) -> "PendingConfirmation":
        return cls(goal_id=goal_id, question=question, opened_at=datetime.now(timezone.utc))


def confirmation_evidence(pending: Optional[PendingConfirmation], user_text: str, goal_id: Optional[str]) -> bool:
    if not pending or not goal_id or pending.goal_id != goal_id:
        return False
    return is_affirmative(user_text)
