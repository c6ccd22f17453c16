"""Scope construction and conversion.

Three representations meet here:
- the tagged union used by the engine (AllScope | HabitsScope | TasksScope)
- the picker's selection state (what the user ticked)
- the persisted/wire record (applies_to_all + two nullable collections)
"""

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from holidaymode.core.errors import EmptySelectionError, ScopeConflictError
from holidaymode.models.holiday import (
    AllScope,
    FrozenTask,
    HabitsScope,
    HabitWithTasks,
    HolidayScope,
    HolidaySelectionState,
    ScopeKind,
    TasksScope,
)


def habits_scope(habit_ids: Iterable[str]) -> HabitsScope:
    ids = frozenset(h for h in habit_ids if h)
    if not ids:
        raise EmptySelectionError("Select at least one habit to freeze")
    return HabitsScope(habit_ids=ids)


def tasks_scope(tasks: Mapping[str, Iterable[str]]) -> TasksScope:
    """Build a tasks scope, dropping habits with no selected tasks."""
    by_habit = {}
    for habit_id, task_ids in tasks.items():
        selected = frozenset(t for t in task_ids if t)
        if habit_id and selected:
            by_habit[habit_id] = by_habit.get(habit_id, frozenset()) | selected
    if not by_habit:
        raise EmptySelectionError("Select at least one task to freeze")
    return TasksScope(tasks=by_habit)


def is_habit_partially_selected(habit_id: str, habit_task_count: int, selected_tasks: Mapping[str, Iterable[str]]) -> bool:
    tasks = set(selected_tasks.get(habit_id) or ())
    if not tasks:
        return False
    return len(tasks) < habit_task_count


def is_habit_fully_selected(habit_id: str, habit_task_count: int, selected_tasks: Mapping[str, Iterable[str]]) -> bool:
    tasks = selected_tasks.get(habit_id)
    if tasks is None:
        return False
    return len(set(tasks)) == habit_task_count


def _fully_selected_habits(state: HolidaySelectionState, habits: Sequence[HabitWithTasks]) -> List[str]:
    selected = []
    for habit in habits:
        task_count = len(habit.tasks)
        if task_count == 0:
            # Nothing to tick below the habit; the habit toggle is the selection
            if habit.id in state.selected_habits:
                selected.append(habit.id)
        elif is_habit_fully_selected(habit.id, task_count, state.selected_tasks):
            selected.append(habit.id)
    return selected


def selection_to_scope(
    state: HolidaySelectionState,
    habits: Optional[Sequence[HabitWithTasks]] = None,
) -> HolidayScope:
    """Convert picker state into a scope.

    With a habit catalog, a habits-scope selection only counts habits whose
    every task is ticked; habits without tasks count when toggled. Without a
    catalog the toggled habit ids are taken as-is.

    Raises:
        EmptySelectionError: non-"all" scope with nothing selected
    """
    if state.scope == "all":
        return AllScope()

    if state.scope == "habits":
        if habits is None:
            return habits_scope(state.selected_habits)
        return habits_scope(_fully_selected_habits(state, habits))

    return tasks_scope(state.selected_tasks)


def scope_to_selection(
    scope: HolidayScope,
    habits: Optional[Sequence[HabitWithTasks]] = None,
) -> HolidaySelectionState:
    """Rebuild picker state from a scope (inverse of selection_to_scope).

    With a habit catalog, frozen habits also get every task ticked so the
    catalog-aware conversion sees them as fully selected.
    """
    if isinstance(scope, HabitsScope):
        selected_tasks = {}
        for habit in habits or ():
            if habit.id in scope.habit_ids and habit.tasks:
                selected_tasks[habit.id] = {task.id for task in habit.tasks}
        return HolidaySelectionState(
            scope="habits",
            selected_habits=set(scope.habit_ids),
            selected_tasks=selected_tasks,
        )
    if isinstance(scope, TasksScope):
        return HolidaySelectionState(
            scope="tasks",
            selected_tasks={habit_id: set(task_ids) for habit_id, task_ids in scope.tasks.items()},
        )
    return HolidaySelectionState(scope="all")


def selection_summary(state: HolidaySelectionState, habits: Sequence[HabitWithTasks]) -> str:
    if state.scope == "all":
        return f"All {len(habits)} habits"

    if state.scope == "habits":
        count = len(state.selected_habits)
        return f"{count} {'habit' if count == 1 else 'habits'}"

    total_tasks = sum(len(tasks) for tasks in state.selected_tasks.values())
    habit_count = len(state.selected_tasks)
    return (
        f"{total_tasks} {'task' if total_tasks == 1 else 'tasks'} across "
        f"{habit_count} {'habit' if habit_count == 1 else 'habits'}"
    )


def _frozen_tasks_mapping(frozen_tasks: Iterable[Union[FrozenTask, Mapping]]) -> Dict[str, List[str]]:
    mapping: Dict[str, List[str]] = {}
    for entry in frozen_tasks:
        if isinstance(entry, FrozenTask):
            habit_id, task_ids = entry.habit_id, entry.task_ids
        else:
            habit_id = entry.get("habit_id") or entry.get("habitId")
            task_ids = entry.get("task_ids") or entry.get("taskIds") or []
        mapping.setdefault(habit_id, []).extend(task_ids)
    return mapping


def scope_from_request(
    kind: ScopeKind,
    frozen_habits: Optional[Sequence[str]] = None,
    frozen_tasks: Optional[Sequence[Union[FrozenTask, Mapping]]] = None,
) -> HolidayScope:
    """Build a scope from a create request (scope kind + the matching collection).

    Raises:
        ScopeConflictError: a collection is populated that does not match `kind`
        EmptySelectionError: the matching collection names nothing
    """
    if kind == "all":
        if frozen_habits or frozen_tasks:
            raise ScopeConflictError("scope 'all' cannot name habits or tasks")
        return AllScope()
    if kind == "habits":
        if frozen_tasks:
            raise ScopeConflictError("scope 'habits' cannot name tasks")
        return habits_scope(frozen_habits or ())
    if frozen_habits:
        raise ScopeConflictError("scope 'tasks' cannot name whole habits")
    return tasks_scope(_frozen_tasks_mapping(frozen_tasks or ()))


def scope_from_record(
    applies_to_all: bool,
    frozen_habits: Optional[Sequence[str]],
    frozen_tasks: Optional[Sequence[Mapping]],
) -> HolidayScope:
    """Read the stored three-column representation back into a scope.

    Whichever collection is populated is the source of truth.
    """
    populated = [bool(applies_to_all), bool(frozen_habits), bool(frozen_tasks)]
    if sum(populated) > 1:
        raise ScopeConflictError("holiday record has more than one scope populated")
    if frozen_habits:
        return habits_scope(frozen_habits)
    if frozen_tasks:
        return tasks_scope(_frozen_tasks_mapping(frozen_tasks))
    # Neither collection populated reads as all, whatever the flag says
    return AllScope()


def scope_to_record(scope: HolidayScope) -> Tuple[bool, Optional[List[str]], Optional[List[dict]]]:
    """Scope -> (applies_to_all, frozen_habits, frozen_tasks) with at most one populated."""
    if isinstance(scope, HabitsScope):
        return False, sorted(scope.habit_ids), None
    if isinstance(scope, TasksScope):
        return False, None, [
            {"habit_id": habit_id, "task_ids": sorted(task_ids)}
            for habit_id, task_ids in sorted(scope.tasks.items())
        ]
    return True, None, None


def frozen_tasks_view(scope: HolidayScope) -> Optional[List[FrozenTask]]:
    if not isinstance(scope, TasksScope):
        return None
    return [
        FrozenTask(habit_id=habit_id, task_ids=sorted(task_ids))
        for habit_id, task_ids in sorted(scope.tasks.items())
    ]


def describe_scope(scope: HolidayScope) -> str:
    if isinstance(scope, HabitsScope):
        count = len(scope.habit_ids)
        return f"{count} {'habit' if count == 1 else 'habits'}"
    if isinstance(scope, TasksScope):
        total = scope.total_tasks
        habit_count = len(scope.tasks)
        return (
            f"{total} {'task' if total == 1 else 'tasks'} across "
            f"{habit_count} {'habit' if habit_count == 1 else 'habits'}"
        )
    return "all habits"
