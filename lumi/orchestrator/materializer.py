import logging
import uuid
from datetime import date, datetime, timedelta, timezone
from typing import List, Optional

from ..schemas.blueprint import Blueprint
from ..schemas.goal import DailyTask, Goal, Phase
from .goals import GoalStore

logger = logging.getLogger(__name__)


def build_phases(blueprint: Blueprint) -> List[Phase]:
    return [
        Phase(
            id=str(uuid.uuid4()),
            name=template.name,
            duration_days=template.duration_days,
            daily_task_label=template.task_label,
            daily_task_detail=template.task_detail,
            color_tag=template.color_tag,
            order_index=index,
        )
        for index, template in enumerate(blueprint.phases)
    ]


def build_daily_tasks(blueprint: Blueprint, start: date) -> List[DailyTask]:
    total_days = blueprint.resolved_total_days
    tasks: List[DailyTask] = []
    current = start
    for phase_index, template in enumerate(blueprint.phases):
        for _ in range(template.duration_days):
            # Caps overshoot when total_days is smaller than the phase sum.
            if len(tasks) >= total_days:
                return tasks
            tasks.append(
                DailyTask(
                    id=str(uuid.uuid4()),
                    date=current,
                    label=template.task_label,
                    detail=template.task_detail,
                    color_tag=template.color_tag,
                    phase_index=phase_index,
                )
            )
            current = current + timedelta(days=1)
    return tasks


def materialize_goal(blueprint: Blueprint, today: Optional[date] = None, created_at: Optional[datetime] = None) -> Goal:
    start = today or date.today()
    goal = Goal(
        id=str(uuid.uuid4()),
        title=blueprint.title,
        total_days=blueprint.resolved_total_days,
        created_at=created_at or datetime.now(timezone.utc),
        phases=build_phases(blueprint),
        daily_tasks=build_daily_tasks(blueprint, start),
    )
    logger.info(
        "Materialized goal '%s': %d phases, %d daily tasks from %s",
        goal.title,
        len(goal.phases),
        len(goal.daily_tasks),
        start.isoformat(),
        extra={"lumi_goal_id": goal.id},
    )
    return goal


async def persist_blueprint(store: GoalStore, blueprint: Blueprint, today: Optional[date] = None) -> Goal:
    goal = materialize_goal(blueprint, today)
    archived = await store.archive_active_goals()
    if archived:
        logger.info("Archived %d previously active goal(s) before inserting %s", len(archived), goal.id)
    return await store.insert_goal(goal)
