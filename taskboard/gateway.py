"""
Status transition gateway: persists a column move against the backend.

The gateway call is the only suspension point in a drag: the caller applies
the move locally first and awaits this in the background.

HTTP contract (see taskboard.server):
    PATCH {base_url}/api/tasks/<id>
    body: {"status": <new>, "expected_status": <old>}

    2xx          → success
    409          → Conflict (status changed concurrently)
    400/404/422  → ValidationError (target rejected, task gone or locked)
    5xx, no conn → NetworkError
"""
import asyncio
import logging
from typing import List, Optional

import requests

from .schema import Task, TaskStatus

logger = logging.getLogger(__name__)


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Errors
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TransitionError(Exception):
    """Base class for a failed status transition."""

    kind = "error"

    def __init__(self, message: str = "", task_id: Optional[str] = None):
        super().__init__(message)
        self.task_id = task_id


class NetworkError(TransitionError):
    """The request never reached the backend, or the backend failed."""
    kind = "network"


class Conflict(TransitionError):
    """The task's status changed since the client read it (lost update)."""
    kind = "conflict"

    def __init__(
        self,
        message: str = "",
        task_id: Optional[str] = None,
        current_status: Optional[TaskStatus] = None,
    ):
        super().__init__(message, task_id)
        self.current_status = current_status


class ValidationError(TransitionError):
    """The backend rejected the target status (locked, archived, unknown)."""
    kind = "validation"


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gateways
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class StatusTransitionGateway:
    """Interface: subclasses implement ``_send``."""

    async def request_transition(
        self, task_id: str, old_status: TaskStatus, new_status: TaskStatus
    ) -> None:
        """Persist the move or raise a TransitionError subclass."""
        assert old_status != new_status, "no-op transitions must not reach the gateway"
        await self._send(task_id, old_status, new_status)

    async def _send(
        self, task_id: str, old_status: TaskStatus, new_status: TaskStatus
    ) -> None:
        raise NotImplementedError


class HttpTransitionGateway(StatusTransitionGateway):
    """Gateway backed by the task API, using requests off the event loop."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    async def _send(
        self, task_id: str, old_status: TaskStatus, new_status: TaskStatus
    ) -> None:
        await asyncio.to_thread(self._patch, task_id, old_status, new_status)

    def fetch_tasks(self) -> List[Task]:
        """Load the whole board (used for full refreshes)."""
        url = f"{self.base_url}/api/tasks"
        try:
            r = self.session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as e:
            raise NetworkError(f"Could not load tasks: {e}") from e
        return [Task.from_dict(t) for t in r.json().get("tasks", [])]

    def _patch(self, task_id: str, old_status: TaskStatus, new_status: TaskStatus) -> None:
        url = f"{self.base_url}/api/tasks/{task_id}"
        payload = {"status": new_status.value, "expected_status": old_status.value}
        try:
            r = self.session.patch(url, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"PATCH {url} failed: {e}")
            raise NetworkError(f"Could not reach the server: {e}", task_id) from e

        if r.ok:
            logger.debug(f"Task {task_id}: {old_status.value} → {new_status.value} confirmed")
            return

        message = _error_message(r)
        if r.status_code == 409:
            current = None
            try:
                current = TaskStatus(r.json().get("current_status"))
            except (ValueError, TypeError, AttributeError):
                pass
            raise Conflict(message or "Task was changed by someone else", task_id, current)
        if r.status_code in (400, 404, 422):
            raise ValidationError(message or "Transition rejected", task_id)
        raise NetworkError(message or f"Server error ({r.status_code})", task_id)


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        return str(body.get("error", ""))
    return ""
