"""
TaskBoard: the board's state container.

Wires the store, projection, drag controller and optimistic updater
together behind the handful of calls a view layer needs:

    board.view()                    → five-column projection
    board.drag_start(task_id)
    board.drag_over(status)
    board.drop(status | task_id)    → confirmation task or None
    board.drag_cancel()

Views subscribe to be re-rendered whenever the store changes. A stale
board (a task id that vanished from the store) is never shown to the user;
it triggers a full refresh from the loader instead.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from .audit import AuditLogger
from .config import Config
from .drag import DragController, DropTarget, ReorderIntent, StatusChangeIntent
from .gateway import HttpTransitionGateway, StatusTransitionGateway, TransitionError
from .notifications import FAILURE_REASONS, NotificationCenter
from .optimistic import OptimisticUpdater
from .projection import Board, TaskFilters, column_counts, project
from .schema import Task, TaskStatus, completion
from .store import NotFoundError, TaskStore

logger = logging.getLogger(__name__)

Loader = Callable[[], Iterable[Task]]


class TaskBoard:
    """Injectable state container for one board view."""

    def __init__(
        self,
        gateway: StatusTransitionGateway,
        tasks: Optional[Iterable[Task]] = None,
        loader: Optional[Loader] = None,
        notifications: Optional[NotificationCenter] = None,
        audit: Optional[AuditLogger] = None,
    ):
        self.store = TaskStore(tasks)
        self.loader = loader
        self.notifications = notifications or NotificationCenter()
        self.controller = DragController(self.store)
        self.updater = OptimisticUpdater(
            self.store,
            gateway,
            notifications=self.notifications,
            audit=audit,
            on_change=self._changed,
        )
        self.search_query = ""
        self.filters: Optional[TaskFilters] = None
        self._listeners: List[Callable[["TaskBoard"], None]] = []

    @classmethod
    def from_config(cls, cfg: Config) -> "TaskBoard":
        """Board talking to the task API at ``cfg.api_url``, loaded once."""
        gateway = HttpTransitionGateway(cfg.api_url, timeout=cfg.request_timeout)
        board = cls(
            gateway,
            loader=gateway.fetch_tasks,
            audit=AuditLogger(cfg.audit_log or None),
        )
        board.refresh()
        return board

    # ── Rendering ────────────────────────────────────────────────

    def subscribe(self, listener: Callable[["TaskBoard"], None]) -> None:
        """Register a re-render callback."""
        self._listeners.append(listener)

    def _changed(self) -> None:
        for listener in self._listeners:
            try:
                listener(self)
            except Exception as e:
                logger.error(f"Board listener failed: {e}")

    def view(self) -> Board:
        return project(self.store.get_all(), self.search_query, self.filters)

    def counts(self) -> dict:
        return column_counts(self.view())

    def stats(self) -> dict:
        return completion(self.store.get_all())

    def set_search(self, query: str) -> None:
        self.search_query = query or ""
        self._changed()

    def set_filters(self, filters: Optional[TaskFilters]) -> None:
        self.filters = filters
        self._changed()

    # ── Store maintenance ────────────────────────────────────────

    def refresh(self) -> bool:
        """
        Reload every task from the loader (full board refresh).

        If the loader fails the current tasks stay on the board and the user
        gets a notification. Returns True when the board was reloaded.
        """
        if self.loader is None:
            logger.warning("Board refresh requested but no loader is configured")
            return False
        self.controller.cancel()
        try:
            tasks = list(self.loader())
        except TransitionError as e:
            logger.warning(f"Board refresh failed ({e.kind}): {e}")
            self.notifications.notify(
                f"Could not refresh the board: {FAILURE_REASONS.get(e.kind, e)}.",
                level="error",
                kind=e.kind,
            )
            return False
        self.store.replace_all(tasks)
        self._changed()
        return True

    def add_task(self, task: Task) -> None:
        self.store.add(task)
        self._changed()

    def remove_task(self, task_id: str) -> None:
        """Drop a deleted task from whichever column holds it."""
        if self.controller.session and self.controller.session.task_id == task_id:
            self.controller.cancel()
        try:
            self.store.remove(task_id)
        except NotFoundError as e:
            self._stale(e)
            return
        self._changed()

    def _stale(self, error: NotFoundError) -> None:
        logger.warning(f"{error}; board is stale, refreshing")
        self.refresh()

    # ── Drag gestures ────────────────────────────────────────────

    def drag_start(self, task_id: str) -> bool:
        try:
            self.controller.start(task_id)
        except NotFoundError as e:
            self._stale(e)
            return False
        return True

    def drag_over(self, candidate: Optional[TaskStatus]) -> None:
        self.controller.over(candidate)

    def drag_cancel(self) -> None:
        self.controller.cancel()

    def drop(self, target: DropTarget) -> Optional[asyncio.Task]:
        """
        Finish the gesture. Column moves return the background confirmation
        task; reorders and no-ops return None. A column move outside a running
        event loop raises RuntimeError and leaves the store unchanged.
        """
        intent = self.controller.drop(target)
        if intent is None:
            return None

        try:
            if isinstance(intent, ReorderIntent):
                self.store.reorder(intent.task_id, intent.over_task_id)
                self._changed()
                return None
            if isinstance(intent, StatusChangeIntent):
                return self.updater.submit(intent)
        except NotFoundError as e:
            self._stale(e)
        return None

    async def wait_idle(self) -> None:
        """Wait until no gateway call is in flight."""
        await self.updater.drain()
