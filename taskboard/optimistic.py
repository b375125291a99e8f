"""
Optimistic status changes with guarded rollback.

A column move is applied to the store immediately, then confirmed with the
gateway in the background:

    submit(intent)
      ├─ store.apply_status_change      (synchronous, re-render)
      └─ gateway.request_transition     (asyncio task)
            ├─ ok      → nothing to do
            └─ failed  → roll back if still current, notify the user

Each in-flight call is tagged with the store version its move produced and
the version the task had just before. A failed call only rolls back while
its own version is still current; if a newer move of the same task has been
applied since, the rollback is skipped so it cannot clobber the newer state.
A rollback puts the previous version back, so an older call underneath it
is current again and still rolls back if it fails too. A skipped rollback
hands its target down to the next call for the task, so when that one fails
it reverts all the way to the last confirmed status.

No automatic retry: the user re-drags the card.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from .audit import AuditLogger
from .drag import StatusChangeIntent
from .gateway import Conflict, NetworkError, StatusTransitionGateway, TransitionError
from .notifications import NotificationCenter, transition_failure_message
from .schema import TaskStatus
from .store import TaskStore

logger = logging.getLogger(__name__)


@dataclass
class PendingTransition:
    """A gateway call in flight, with the store versions around its move."""
    intent: StatusChangeIntent
    version: int
    base_version: int
    rollback_to: TaskStatus
    future: Optional[asyncio.Task] = None


class OptimisticUpdater:
    """Applies status-change intents locally and confirms them remotely."""

    def __init__(
        self,
        store: TaskStore,
        gateway: StatusTransitionGateway,
        notifications: Optional[NotificationCenter] = None,
        audit: Optional[AuditLogger] = None,
        on_change: Optional[Callable[[], None]] = None,
    ):
        self.store = store
        self.gateway = gateway
        self.notifications = notifications or NotificationCenter()
        self.audit = audit or AuditLogger(None)
        self.on_change = on_change or (lambda: None)
        self._in_flight: List[PendingTransition] = []

    def submit(self, intent: StatusChangeIntent) -> Optional[asyncio.Task]:
        """
        Apply ``intent`` now and schedule its confirmation.

        Must be called from within the running event loop. Returns the
        confirmation task, or None when the intent was stale and dropped.
        Raises NotFoundError if the task is no longer in the store, and
        RuntimeError (store untouched) when no event loop is running.
        """
        loop = asyncio.get_running_loop()
        task = self.store.get(intent.task_id)
        if task.status != intent.old_status:
            # Stale intent: the task already moved. Fail closed.
            logger.warning(
                f"Stale intent for {intent.task_id}: expected "
                f"{intent.old_status.value}, store has {task.status.value}"
            )
            self._report_failure(intent, Conflict("Stale board state", intent.task_id))
            self.audit.log(
                intent.task_id, intent.old_status.value, intent.new_status.value,
                "stale", current=task.status.value,
            )
            return None

        base_version = self.store.version(intent.task_id)
        previous = self.store.apply_status_change(intent.task_id, intent.new_status)
        assert previous == intent.old_status
        pending = PendingTransition(
            intent=intent,
            version=self.store.version(intent.task_id),
            base_version=base_version,
            rollback_to=previous,
        )
        self.audit.log(intent.task_id, previous.value, intent.new_status.value, "applied")
        self.on_change()

        pending.future = loop.create_task(self._confirm(pending))
        self._in_flight.append(pending)
        return pending.future

    def pending(self) -> List[PendingTransition]:
        """Gateway calls not yet resolved, oldest first."""
        return list(self._in_flight)

    async def drain(self) -> None:
        """Wait for every in-flight confirmation to resolve."""
        while self._in_flight:
            await asyncio.gather(*(p.future for p in list(self._in_flight)))

    async def _confirm(self, pending: PendingTransition) -> None:
        intent = pending.intent
        try:
            await self.gateway.request_transition(
                intent.task_id, intent.old_status, intent.new_status
            )
        except TransitionError as e:
            self._rollback(pending, e)
        except Exception as e:
            logger.exception(f"Gateway raised unexpectedly for {intent.task_id}")
            self._rollback(pending, NetworkError(str(e), intent.task_id))
        else:
            logger.info(
                f"Task {intent.task_id}: {intent.old_status.value} → "
                f"{intent.new_status.value} confirmed"
            )
            self.audit.log(
                intent.task_id, intent.old_status.value, intent.new_status.value, "confirmed"
            )
        finally:
            self._in_flight.remove(pending)

    def _rollback(self, pending: PendingTransition, error: TransitionError) -> None:
        intent = pending.intent
        logger.warning(
            f"Task {intent.task_id}: {intent.old_status.value} → "
            f"{intent.new_status.value} failed ({error.kind}): {error}"
        )

        if intent.task_id not in self.store:
            logger.info(f"Task {intent.task_id} left the board; nothing to roll back")
            self.audit.log(
                intent.task_id, intent.old_status.value, intent.new_status.value,
                "gone", error=error.kind,
            )
            return

        if self.store.version(intent.task_id) != pending.version:
            logger.info(f"Rollback of {intent.task_id} superseded by a newer move")
            successor = self._successor(pending)
            if successor is not None:
                # The newer call now undoes this move too if it fails
                successor.rollback_to = pending.rollback_to
                successor.base_version = pending.base_version
            self._report_failure(intent, error)
            self.audit.log(
                intent.task_id, intent.old_status.value, intent.new_status.value,
                "superseded", error=error.kind,
            )
            return

        self.store.apply_status_change(intent.task_id, pending.rollback_to)
        self.store.restore_version(intent.task_id, pending.base_version)
        self.on_change()
        self._report_failure(intent, error)
        self.audit.log(
            intent.task_id, intent.old_status.value, intent.new_status.value,
            "rolled_back", error=error.kind, restored=pending.rollback_to.value,
        )

    def _successor(self, pending: PendingTransition) -> Optional[PendingTransition]:
        """The in-flight call applied directly on top of ``pending``'s move."""
        for other in self._in_flight:
            if (
                other is not pending
                and other.intent.task_id == pending.intent.task_id
                and other.base_version == pending.version
            ):
                return other
        return None

    def _report_failure(self, intent: StatusChangeIntent, error: TransitionError) -> None:
        title = intent.task_id
        if intent.task_id in self.store:
            title = self.store.get(intent.task_id).title
        message = transition_failure_message(title, intent.old_status, intent.new_status, error.kind)
        self.notifications.notify(message, level="error", task_id=intent.task_id, kind=error.kind)
