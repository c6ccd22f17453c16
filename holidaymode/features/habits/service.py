"""
Habit catalog reads.

Habits and their tasks are owned by the habit-tracking side; this module
projects them into HabitWithTasks for the holiday picker and counts them
for holiday stats. `create_habit` exists for seeding and tests.
"""

import uuid
from collections import defaultdict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy import select, insert, func

from holidaymode.core.database import get_db_session, habits, habit_tasks
from holidaymode.models.holiday import HabitWithTasks, TaskInfo


def get_habits_with_tasks(user_id: str) -> List[HabitWithTasks]:
    """Active (non-archived) habits for a user, oldest first, tasks in order."""
    with get_db_session() as session:
        habit_rows = session.execute(
            select(habits)
            .where(habits.c.user_id == user_id)
            .where(habits.c.is_archived.is_(False))
            .order_by(habits.c.created_at, habits.c.id)
        ).all()
        if not habit_rows:
            return []

        habit_ids = [row.id for row in habit_rows]
        task_rows = session.execute(
            select(habit_tasks)
            .where(habit_tasks.c.habit_id.in_(habit_ids))
            .order_by(habit_tasks.c.habit_id, habit_tasks.c.position)
        ).all()

    tasks_by_habit: Dict[str, List[TaskInfo]] = defaultdict(list)
    for row in task_rows:
        tasks_by_habit[row.habit_id].append(
            TaskInfo(id=row.id, name=row.name, description=row.description)
        )

    return [
        HabitWithTasks(
            id=row.id,
            name=row.name,
            category=row.category,
            type=row.type if row.type in ("good", "bad") else "good",
            tasks=tasks_by_habit.get(row.id, []),
            current_streak=row.current_streak or 0,
        )
        for row in habit_rows
    ]


def count_habits_and_tasks(user_id: str) -> Tuple[int, int]:
    """(total active habits, total tasks across them) for stats display."""
    with get_db_session() as session:
        habit_count = session.execute(
            select(func.count())
            .select_from(habits)
            .where(habits.c.user_id == user_id)
            .where(habits.c.is_archived.is_(False))
        ).scalar_one()
        task_count = session.execute(
            select(func.count())
            .select_from(habit_tasks.join(habits, habit_tasks.c.habit_id == habits.c.id))
            .where(habits.c.user_id == user_id)
            .where(habits.c.is_archived.is_(False))
        ).scalar_one()
    return int(habit_count), int(task_count)


def create_habit(
    user_id: str,
    name: str,
    *,
    category: str = "general",
    habit_type: str = "good",
    tasks: Sequence[str] = (),
    current_streak: int = 0,
    habit_id: Optional[str] = None,
    task_ids: Optional[Sequence[str]] = None,
) -> HabitWithTasks:
    habit_id = habit_id or str(uuid.uuid4())
    ids = list(task_ids) if task_ids is not None else [str(uuid.uuid4()) for _ in tasks]
    if len(ids) != len(tasks):
        raise ValueError("task_ids must match tasks one-to-one")

    with get_db_session() as session:
        session.execute(
            insert(habits).values(
                id=habit_id,
                user_id=user_id,
                name=name,
                category=category,
                type=habit_type,
                current_streak=current_streak,
                is_archived=False,
                created_at=datetime.now(timezone.utc),
            )
        )
        for position, (task_id, task_name) in enumerate(zip(ids, tasks)):
            session.execute(
                insert(habit_tasks).values(
                    id=task_id,
                    habit_id=habit_id,
                    name=task_name,
                    position=position,
                )
            )

    return HabitWithTasks(
        id=habit_id,
        name=name,
        category=category,
        type=habit_type,
        tasks=[TaskInfo(id=task_id, name=task_name) for task_id, task_name in zip(ids, tasks)],
        current_streak=current_streak,
    )
