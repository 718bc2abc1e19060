import asyncio
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional

from ..schemas.chat import ChatMessage, ChatRole
from ..schemas.goal import DailyTask, Goal, GoalProgress, GoalSnapshot, Phase


def _now() -> datetime:
    return datetime.now(timezone.utc)


def task_for_date(goal: Goal, day: date) -> Optional[DailyTask]:
    return next((task for task in goal.daily_tasks if task.date == day), None)


def incomplete_tasks(goal: Goal) -> List[DailyTask]:
    return [task for task in goal.daily_tasks if not task.is_completed]


def is_fully_completed(goal: Goal) -> bool:
    return bool(goal.daily_tasks) and not incomplete_tasks(goal)


def goal_progress(goal: Goal) -> GoalProgress:
    total = len(goal.daily_tasks)
    completed = total - len(incomplete_tasks(goal))
    return GoalProgress(completed=completed, total=total, ratio=completed / total if total else 0)


def current_phase(goal: Goal) -> Optional[Phase]:
    ordered = sorted(goal.phases, key=lambda phase: phase.order_index)
    if goal.current_phase_index < len(ordered):
        return ordered[goal.current_phase_index]
    return None


def current_day_number(goal: Goal, today: Optional[date] = None) -> int:
    today = today or date.today()
    # Tasks carry the local calendar; created_at is a UTC instant.
    start = min(task.date for task in goal.daily_tasks) if goal.daily_tasks else goal.created_at.date()
    elapsed = (today - start).days
    return max(1, min(elapsed + 1, goal.total_days))


def calculate_streak(goal: Goal, today: Optional[date] = None) -> int:
    # Counts backwards from yesterday; today is still in progress.
    today = today or date.today()
    streak = 0
    for offset in range(1, goal.total_days + 1):
        task = task_for_date(goal, today - timedelta(days=offset))
        if not task or not task.is_completed:
            break
        streak += 1
    return streak


def longest_streak(goal: Goal) -> int:
    best = 0
    run = 0
    for task in sorted(goal.daily_tasks, key=lambda item: item.date):
        run = run + 1 if task.is_completed else 0
        best = max(best, run)
    return best


def build_snapshot(goal: Goal, today: Optional[date] = None) -> GoalSnapshot:
    today = today or date.today()
    return GoalSnapshot(
        goal=goal,
        progress=goal_progress(goal),
        current_day_number=current_day_number(goal, today),
        streak=calculate_streak(goal, today),
        today_task=task_for_date(goal, today),
    )


class GoalNotFound(LookupError):
    pass


class GoalStore:
    """In-memory collection store for goals and chat messages."""

    def __init__(self) -> None:
        self._goals: Dict[str, Goal] = {}
        self._messages: List[ChatMessage] = []
        self._lock = asyncio.Lock()

    def _require(self, goal_id: str) -> Goal:
        goal = self._goals.get(goal_id)
        if not goal:
            raise GoalNotFound(f"Goal {goal_id} not found")
        return goal

    async def insert_goal(self, goal: Goal) -> Goal:
        async with self._lock:
            self._goals[goal.id] = goal
            return goal

    async def get_goal(self, goal_id: str) -> Optional[Goal]:
        async with self._lock:
            return self._goals.get(goal_id)

    async def fetch_active_goal(self) -> Optional[Goal]:
        async with self._lock:
            active = [goal for goal in self._goals.values() if not goal.is_archived and not goal.is_completed]
            active.sort(key=lambda goal: goal.created_at, reverse=True)
            return active[0] if active else None

    async def list_goals(self, archived: Optional[bool] = None) -> List[Goal]:
        async with self._lock:
            goals = list(self._goals.values())
        if archived is not None:
            goals = [goal for goal in goals if goal.is_archived == archived]
        return sorted(goals, key=lambda goal: goal.created_at, reverse=True)

    async def delete_goal(self, goal_id: str) -> None:
        async with self._lock:
            self._goals.pop(goal_id, None)

    async def archive_active_goals(self) -> List[str]:
        async with self._lock:
            archived: List[str] = []
            for goal_id, goal in list(self._goals.items()):
                if not goal.is_archived and not goal.is_completed:
                    self._goals[goal_id] = goal.model_copy(update={"is_archived": True})
                    archived.append(goal_id)
            return archived

    async def complete_daily_task(self, goal_id: str, task_id: str) -> Goal:
        async with self._lock:
            goal = self._require(goal_id)
            if not any(task.id == task_id for task in goal.daily_tasks):
                raise GoalNotFound(f"Task {task_id} not found on goal {goal_id}")
            stamp = _now()
            tasks = [
                task.model_copy(update={"is_completed": True, "completed_at": stamp}) if task.id == task_id and not task.is_completed else task
                for task in goal.daily_tasks
            ]
            updates: Dict[str, object] = {"daily_tasks": tasks}
            pending = [task for task in tasks if not task.is_completed]
            if pending:
                updates["current_phase_index"] = pending[0].phase_index
            else:
                updates.update({"is_completed": True, "is_archived": True})
            updated = goal.model_copy(update=updates)
            self._goals[goal_id] = updated
            return updated

    async def rewrite_task(self, goal_id: str, day: date, label: str) -> Goal:
        async with self._lock:
            goal = self._require(goal_id)
            if not task_for_date(goal, day):
                raise GoalNotFound(f"No task scheduled on {day.isoformat()} for goal {goal_id}")
            tasks = [task.model_copy(update={"label": label}) if task.date == day else task for task in goal.daily_tasks]
            updated = goal.model_copy(update={"daily_tasks": tasks})
            self._goals[goal_id] = updated
            return updated

    async def force_complete(self, goal_id: str) -> Goal:
        async with self._lock:
            goal = self._require(goal_id)
            stamp = _now()
            tasks = [task if task.is_completed else task.model_copy(update={"is_completed": True, "completed_at": stamp}) for task in goal.daily_tasks]
            updated = goal.model_copy(update={"daily_tasks": tasks, "is_completed": True, "is_archived": True})
            self._goals[goal_id] = updated
            return updated

    async def append_message(self, role: ChatRole, content: str, linked_goal_id: Optional[str] = None) -> ChatMessage:
        message = ChatMessage(id=str(uuid.uuid4()), role=role, content=content, created_at=_now(), linked_goal_id=linked_goal_id)
        async with self._lock:
            self._messages.append(message)
        return message

    async def list_messages(self, limit: Optional[int] = None) -> List[ChatMessage]:
        async with self._lock:
            messages = list(self._messages)
        return messages[-limit:] if isinstance(limit, int) and limit > 0 else messages

    async def clear_messages(self) -> None:
        async with self._lock:
            self._messages.clear()
