from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field

DEFAULT_TASK_LABEL = "今日任务"
DEFAULT_TASK_DETAIL = ""
DEFAULT_COLOR_TAG = "FFD700"


class Phase(BaseModel):
    id: str
    name: str
    duration_days: int
    daily_task_label: str
    daily_task_detail: str
    color_tag: str
    order_index: int


class DailyTask(BaseModel):
    id: str
    date: date
    label: str
    detail: str
    color_tag: str
    phase_index: int
    is_completed: bool = False
    completed_at: Optional[datetime] = None


class Goal(BaseModel):
    id: str
    title: str
    total_days: int
    current_phase_index: int = 0
    is_completed: bool = False
    is_archived: bool = False
    created_at: datetime
    phases: List[Phase] = Field(default_factory=list)
    daily_tasks: List[DailyTask] = Field(default_factory=list)


class GoalProgress(BaseModel):
    completed: int
    total: int
    ratio: float


class GoalSnapshot(BaseModel):
    goal: Goal
    progress: GoalProgress
    current_day_number: int
    streak: int
    today_task: Optional[DailyTask] = None
