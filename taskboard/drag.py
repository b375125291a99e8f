"""
Drag session controller: turns pointer gestures into board intents.

Gesture lifecycle:
  Idle → start → Dragging → over* → drop | cancel → Idle

Whatever drag library or input device produces the gesture only has to call
start/over/drop/cancel. The controller never mutates the store; it reads the
task's current status and returns at most one intent per gesture.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from .schema import TaskStatus
from .store import NotFoundError, TaskStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatusChangeIntent:
    """Move a task to another column (goes through the gateway)."""
    task_id: str
    old_status: TaskStatus
    new_status: TaskStatus


@dataclass(frozen=True)
class ReorderIntent:
    """Move a task within its column (local only)."""
    task_id: str
    over_task_id: str


Intent = Union[StatusChangeIntent, ReorderIntent]
DropTarget = Union[TaskStatus, str, None]


@dataclass
class DragSession:
    """State of one in-progress gesture."""
    task_id: str
    source_status: TaskStatus
    candidate_status: Optional[TaskStatus] = None
    over_valid_target: bool = False


class DragController:
    """Idle/Dragging state machine over a read-only view of the store."""

    def __init__(self, store: TaskStore):
        self.store = store
        self.session: Optional[DragSession] = None

    @property
    def is_dragging(self) -> bool:
        return self.session is not None

    def start(self, task_id: str) -> DragSession:
        """
        Begin a gesture on ``task_id``.

        Raises NotFoundError if the task is not in the store (stale board).
        """
        if self.session is not None:
            logger.debug(f"Discarding stale drag session for {self.session.task_id}")
            self.session = None
        task = self.store.get(task_id)
        self.session = DragSession(task_id=task_id, source_status=task.status)
        return self.session

    def over(self, candidate: Optional[TaskStatus]) -> None:
        """Pointer moved over a column (or off every target, with None)."""
        if self.session is None:
            return
        self.session.candidate_status = candidate
        self.session.over_valid_target = candidate is not None

    def cancel(self) -> None:
        """Escape pressed or released outside every target."""
        if self.session is not None:
            logger.debug(f"Drag of {self.session.task_id} cancelled")
        self.session = None

    def drop(self, target: DropTarget) -> Optional[Intent]:
        """
        End the gesture on a column (TaskStatus) or a card (task id).

        Returns a StatusChangeIntent for a genuine column-to-column move, a
        ReorderIntent for a drop onto another card in the same column, and
        None for everything else. The session is always torn down.
        """
        session, self.session = self.session, None
        if session is None or target is None:
            return None

        if isinstance(target, TaskStatus):
            if target == session.source_status:
                return None
            return StatusChangeIntent(session.task_id, session.source_status, target)

        if target == session.task_id:
            return None
        try:
            over_task = self.store.get(target)
        except NotFoundError:
            logger.debug(f"Drop target {target} is no longer on the board")
            return None

        if over_task.status == session.source_status:
            return ReorderIntent(session.task_id, over_task.id)
        # Dropped on a card in another column: the card's column is the target
        return StatusChangeIntent(session.task_id, session.source_status, over_task.status)
