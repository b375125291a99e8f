"""
User-visible notifications (toasts) for the board.

Notifications are non-blocking and dismissible. Renderers subscribe to be
told when one is raised or dismissed.
"""
import itertools
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .schema import STATUS_LABELS, TaskStatus

logger = logging.getLogger(__name__)

# Reason text per TransitionError.kind
FAILURE_REASONS = {
    "network": "the server could not be reached",
    "conflict": "it was changed by someone else in the meantime",
    "validation": "the move was rejected",
}


@dataclass
class Notification:
    id: int
    level: str          # "error" | "info"
    message: str
    task_id: Optional[str] = None
    kind: Optional[str] = None
    dismissed: bool = False


def transition_failure_message(
    task_title: str, old_status: TaskStatus, new_status: TaskStatus, kind: str
) -> str:
    reason = FAILURE_REASONS.get(kind, "an unexpected error occurred")
    return (
        f'Could not move "{task_title}" from {STATUS_LABELS[old_status]} '
        f"to {STATUS_LABELS[new_status]}: {reason}."
    )


class NotificationCenter:
    """Holds notifications and fans them out to subscribers."""

    def __init__(self):
        self._items: List[Notification] = []
        self._ids = itertools.count(1)
        self.subscribers: List[Callable[[Notification], None]] = []

    def subscribe(self, callback: Callable[[Notification], None]) -> None:
        self.subscribers.append(callback)

    def _emit(self, notification: Notification) -> None:
        for callback in self.subscribers:
            try:
                callback(notification)
            except Exception as e:
                logger.error(f"Notification subscriber failed: {e}")

    def notify(
        self,
        message: str,
        level: str = "error",
        task_id: Optional[str] = None,
        kind: Optional[str] = None,
    ) -> Notification:
        n = Notification(id=next(self._ids), level=level, message=message, task_id=task_id, kind=kind)
        self._items.append(n)
        self._emit(n)
        return n

    def dismiss(self, notification_id: int) -> bool:
        for n in self._items:
            if n.id == notification_id and not n.dismissed:
                n.dismissed = True
                self._emit(n)
                return True
        return False

    def active(self) -> List[Notification]:
        """Notifications not yet dismissed, oldest first."""
        return [n for n in self._items if not n.dismissed]

    def all(self) -> List[Notification]:
        return list(self._items)
