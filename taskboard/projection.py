"""
Board projection: group a flat task list into the five status columns.

Pure functions only. The projection never owns or mutates tasks, it groups
references to them, so it is safe to recompute on every render.
"""
from dataclasses import dataclass
from datetime import date
from typing import Dict, Iterable, List, Optional

from .schema import BOARD_COLUMNS, Task, TaskPriority, TaskStatus

Board = Dict[TaskStatus, List[Task]]


@dataclass(frozen=True)
class TaskFilters:
    """Board filters applied on top of the search query. None = any."""
    priority: Optional[TaskPriority] = None
    assignee_id: Optional[str] = None
    case_id: Optional[str] = None
    due_from: Optional[date] = None
    due_to: Optional[date] = None

    def matches(self, task: Task) -> bool:
        if self.priority is not None and task.priority != self.priority:
            return False
        if self.assignee_id is not None and task.assignee_id != self.assignee_id:
            return False
        if self.case_id is not None and task.case_id != self.case_id:
            return False
        if self.due_from is not None or self.due_to is not None:
            if task.due_date is None:
                return False
            if self.due_from is not None and task.due_date < self.due_from:
                return False
            if self.due_to is not None and task.due_date > self.due_to:
                return False
        return True


def matches_query(task: Task, query: str) -> bool:
    """Case-insensitive substring match on title or description."""
    needle = query.strip().lower()
    if not needle:
        return True
    if needle in task.title.lower():
        return True
    return bool(task.description) and needle in task.description.lower()


def empty_board() -> Board:
    return {status: [] for status in BOARD_COLUMNS}


def project(
    tasks: Iterable[Task],
    search_query: str = "",
    filters: Optional[TaskFilters] = None,
) -> Board:
    """
    Group tasks by status, keeping input order within each column.

    The result always has exactly one key per column; a column with no
    matching tasks is an empty list.
    """
    board = empty_board()
    query = (search_query or "").strip()
    for task in tasks:
        if query and not matches_query(task, query):
            continue
        if filters is not None and not filters.matches(task):
            continue
        board[task.status].append(task)
    return board


def column_counts(board: Board) -> Dict[str, int]:
    """Task count per column, keyed by status value."""
    return {status.value: len(board.get(status, [])) for status in BOARD_COLUMNS}
