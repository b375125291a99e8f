"""Shared test fixtures: task factory and fake transition gateways."""

import asyncio

import pytest

from taskboard.gateway import StatusTransitionGateway
from taskboard.schema import Task, TaskStatus


def _make_task(task_id: str, status: TaskStatus = TaskStatus.TODO, **kwargs) -> Task:
    kwargs.setdefault("title", f"Task {task_id}")
    return Task(id=task_id, status=status, **kwargs)


class StubGateway(StatusTransitionGateway):
    """Resolves every call immediately, failing with ``error`` if set."""

    def __init__(self, error=None):
        self.error = error
        self.calls = []

    async def _send(self, task_id, old_status, new_status):
        self.calls.append((task_id, old_status, new_status))
        if self.error is not None:
            raise self.error


class ScriptedGateway(StatusTransitionGateway):
    """Each call blocks until the test resolves it by index."""

    def __init__(self):
        self.calls = []
        self._futures = []

    async def _send(self, task_id, old_status, new_status):
        future = asyncio.get_running_loop().create_future()
        self.calls.append((task_id, old_status, new_status))
        self._futures.append(future)
        await future

    def succeed(self, index: int):
        self._futures[index].set_result(None)

    def fail(self, index: int, error: Exception):
        self._futures[index].set_exception(error)


async def _settle(rounds: int = 5):
    """Let scheduled tasks run up to their next suspension point."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def make_task():
    return _make_task


@pytest.fixture
def stub_gateway():
    return StubGateway()


@pytest.fixture
def scripted_gateway():
    return ScriptedGateway()


@pytest.fixture
def settle():
    return _settle


@pytest.fixture
def failing_gateway():
    """Factory for a gateway whose every call raises ``error``."""
    return StubGateway
