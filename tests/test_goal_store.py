from datetime import datetime, timedelta, timezone

import pytest

from conftest import TODAY
from lumi.orchestrator.goals import (
    GoalNotFound,
    GoalStore,
    build_snapshot,
    calculate_streak,
    current_day_number,
    current_phase,
    goal_progress,
    is_fully_completed,
    longest_streak,
    task_for_date,
)
from lumi.orchestrator.materializer import materialize_goal
from lumi.schemas.blueprint import Blueprint, PhaseSpec

CREATED = datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)


def _goal(durations=(2, 3)):
    blueprint = Blueprint(
        title="Sleep early",
        phases=[PhaseSpec(name=f"P{index}", duration_days=days) for index, days in enumerate(durations)],
    )
    return materialize_goal(blueprint, today=TODAY, created_at=CREATED)


def _with_completed(goal, days):
    tasks = [task.model_copy(update={"is_completed": True}) if task.date in days else task for task in goal.daily_tasks]
    return goal.model_copy(update={"daily_tasks": tasks})


def test_derived_views():
    goal = _with_completed(_goal(), {TODAY, TODAY + timedelta(days=1), TODAY + timedelta(days=2)})
    later = TODAY + timedelta(days=3)
    assert current_day_number(goal, later) == 4
    assert current_day_number(goal, TODAY + timedelta(days=30)) == goal.total_days
    assert calculate_streak(goal, later) == 3
    assert calculate_streak(goal, TODAY + timedelta(days=2)) == 2
    assert longest_streak(goal) == 3
    assert task_for_date(goal, later).label == goal.daily_tasks[3].label
    progress = goal_progress(goal)
    assert (progress.completed, progress.total) == (3, 5)
    assert progress.ratio == pytest.approx(0.6)
    assert not is_fully_completed(goal)
    assert current_phase(goal).name == "P0"


def test_streak_breaks_on_a_missed_day():
    goal = _with_completed(_goal(), {TODAY, TODAY + timedelta(days=2)})
    assert calculate_streak(goal, TODAY + timedelta(days=3)) == 1
    assert longest_streak(goal) == 1


def test_snapshot():
    snapshot = build_snapshot(_goal(), TODAY)
    assert snapshot.current_day_number == 1
    assert snapshot.streak == 0
    assert snapshot.today_task.date == TODAY


@pytest.mark.asyncio
async def test_fetch_active_goal_prefers_newest_unarchived():
    store = GoalStore()
    old = _goal()
    new = _goal().model_copy(update={"created_at": CREATED + timedelta(hours=1)})
    archived = _goal().model_copy(update={"created_at": CREATED + timedelta(hours=2), "is_archived": True})
    for goal in (old, new, archived):
        await store.insert_goal(goal)
    assert (await store.fetch_active_goal()).id == new.id
    assert [goal.id for goal in await store.list_goals(archived=False)] == [new.id, old.id]


@pytest.mark.asyncio
async def test_completing_tasks_advances_phase_then_completes_goal():
    store = GoalStore()
    goal = await store.insert_goal(_goal((1, 1)))
    first, second = goal.daily_tasks
    updated = await store.complete_daily_task(goal.id, first.id)
    assert updated.current_phase_index == 1
    assert not updated.is_completed
    assert updated.daily_tasks[0].completed_at is not None
    finished = await store.complete_daily_task(goal.id, second.id)
    assert finished.is_completed and finished.is_archived
    assert await store.fetch_active_goal() is None


@pytest.mark.asyncio
async def test_unknown_goal_or_task_raises():
    store = GoalStore()
    goal = await store.insert_goal(_goal())
    with pytest.raises(GoalNotFound):
        await store.complete_daily_task("missing", goal.daily_tasks[0].id)
    with pytest.raises(GoalNotFound):
        await store.complete_daily_task(goal.id, "missing")
    with pytest.raises(GoalNotFound):
        await store.rewrite_task(goal.id, TODAY - timedelta(days=1), "label")
    assert await store.get_goal(goal.id) == goal


@pytest.mark.asyncio
async def test_rewrite_and_force_complete():
    store = GoalStore()
    goal = await store.insert_goal(_goal())
    rewritten = await store.rewrite_task(goal.id, TODAY, "Lights out at 23:00")
    assert task_for_date(rewritten, TODAY).label == "Lights out at 23:00"
    assert task_for_date(rewritten, TODAY + timedelta(days=1)).label == goal.daily_tasks[1].label
    completed = await store.force_complete(goal.id)
    assert completed.is_completed and completed.is_archived
    assert all(task.is_completed for task in completed.daily_tasks)


@pytest.mark.asyncio
async def test_message_history_is_bounded_on_read():
    store = GoalStore()
    for index in range(5):
        await store.append_message("user" if index % 2 == 0 else "assistant", f"m{index}")
    recent = await store.list_messages(limit=2)
    assert [message.content for message in recent] == ["m3", "m4"]
    assert recent[0].api_format() == {"role": "assistant", "content": "m3"}
    await store.clear_messages()
    assert await store.list_messages() == []


def test_day_number_follows_task_calendar_not_utc_creation_time():
    # Created late on the previous UTC day, but scheduled from the local TODAY.
    goal = _goal().model_copy(update={"created_at": datetime(2026, 3, 1, 23, 30, tzinfo=timezone.utc)})
    assert current_day_number(goal, TODAY) == 1
    assert current_day_number(goal, TODAY + timedelta(days=2)) == 3
