"""
In-memory task store: the single source of truth for the board.

Holds a flat, ordered collection of tasks. Column order on the board is the
store order filtered by status, so moving a task to the end of the store
puts it at the end of its column.

Every status change stamps the task with a fresh version number drawn from
a store-wide counter, so no version is handed out twice, not even across
full refreshes. In-flight gateway calls remember the version they were
issued against and only roll back while it is still current; a rollback
puts back the version the task had before the undone move.
"""
import itertools
import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)


class NotFoundError(KeyError):
    """Raised when a task id is not present in the store."""

    def __init__(self, task_id: str):
        super().__init__(task_id)
        self.task_id = task_id

    def __str__(self) -> str:
        return f"Task {self.task_id} not found"


class TaskStore:
    """Ordered in-memory collection of tasks."""

    def __init__(self, tasks: Optional[Iterable[Task]] = None):
        self._tasks: Dict[str, Task] = {}
        self._versions: Dict[str, int] = {}
        self._clock = itertools.count(1)
        if tasks:
            self.replace_all(tasks)

    def __len__(self) -> int:
        return len(self._tasks)

    def __contains__(self, task_id: object) -> bool:
        return task_id in self._tasks

    def get_all(self) -> List[Task]:
        """All tasks in store order."""
        return list(self._tasks.values())

    def get(self, task_id: str) -> Task:
        try:
            return self._tasks[task_id]
        except KeyError:
            raise NotFoundError(task_id) from None

    def version(self, task_id: str) -> int:
        if task_id not in self._tasks:
            raise NotFoundError(task_id)
        return self._versions[task_id]

    def restore_version(self, task_id: str, version: int) -> None:
        """
        Put back a version this task held earlier.

        Used by rollback so the move underneath the undone one is current
        again and can still roll back itself.
        """
        if task_id not in self._tasks:
            raise NotFoundError(task_id)
        self._versions[task_id] = version

    def add(self, task: Task) -> None:
        """Append a task (end of its column). Re-adding an id replaces it."""
        if task.id in self._tasks:
            del self._tasks[task.id]
        self._tasks[task.id] = task
        self._versions[task.id] = next(self._clock)

    def remove(self, task_id: str) -> Task:
        """Remove a task from whichever column holds it."""
        task = self.get(task_id)
        del self._tasks[task_id]
        del self._versions[task_id]
        return task

    def replace_all(self, tasks: Iterable[Task]) -> None:
        """Full refresh: drop everything and load ``tasks`` in order."""
        self._tasks = {}
        self._versions = {}
        for task in tasks:
            self._tasks[task.id] = task
            self._versions[task.id] = next(self._clock)
        logger.debug(f"Store refreshed with {len(self._tasks)} tasks")

    def apply_status_change(self, task_id: str, new_status: TaskStatus) -> TaskStatus:
        """
        Set a task's status in place and move it to the end of the store.

        Returns the status the task had before the change.
        """
        task = self.get(task_id)
        previous = task.status
        task.status = new_status
        task.updated_at = datetime.now(timezone.utc)
        if new_status == TaskStatus.DONE and task.completed_at is None:
            task.completed_at = task.updated_at
        elif new_status != TaskStatus.DONE:
            task.completed_at = None

        # Re-insert at the end so the task lands at the end of its new column
        del self._tasks[task_id]
        self._tasks[task_id] = task
        self._versions[task_id] = next(self._clock)
        return previous

    def reorder(self, task_id: str, over_task_id: str) -> None:
        """
        Move ``task_id`` into the column slot currently held by ``over_task_id``.

        Same semantics as a sortable list move: dragging down lands after the
        target, dragging up lands before it. Both tasks must share a column;
        reordering never changes status.
        """
        task = self.get(task_id)
        anchor = self.get(over_task_id)
        if task.status != anchor.status:
            raise ValueError(
                f"Cannot reorder {task_id} ({task.status.value}) onto "
                f"{over_task_id} ({anchor.status.value}): different columns"
            )
        if task_id == over_task_id:
            return

        order = list(self._tasks)
        moving_down = order.index(task_id) < order.index(over_task_id)
        order.remove(task_id)
        slot = order.index(over_task_id) + (1 if moving_down else 0)
        order.insert(slot, task_id)
        self._tasks = {tid: self._tasks[tid] for tid in order}
