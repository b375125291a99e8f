"""
Tests for the Flask task API, plus the HTTP gateway driven end to end
through the test client.
"""
import asyncio

import pytest

from taskboard.board import TaskBoard
from taskboard.gateway import Conflict, HttpTransitionGateway, ValidationError
from taskboard.schema import TaskStatus
from taskboard.server import create_app


@pytest.fixture
def app(tmp_path):
    app = create_app(str(tmp_path / "tasks.db"))
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


def _create(client, title, **extra):
    resp = client.post("/api/tasks", json={"title": title, **extra})
    assert resp.status_code == 201
    return resp.get_json()["task"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# CRUD endpoints
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class TestTaskEndpoints:

    def test_health(self, client):
        assert client.get("/health").get_json()["status"] == "ok"

    def test_create_and_get(self, client):
        task = _create(client, "Draft invoice", priority="high", due_date="2026-03-01")
        assert task["id"] == "TSK-001"
        assert task["status"] == "todo"
        assert task["priority"] == "high"

        resp = client.get("/api/tasks/TSK-001")
        assert resp.status_code == 200
        assert resp.get_json()["task"]["title"] == "Draft invoice"

    def test_create_validation_error(self, client):
        resp = client.post("/api/tasks", json={"title": "ab"})
        assert resp.status_code == 400
        assert "at least 3" in resp.get_json()["error"]

    def test_get_missing(self, client):
        assert client.get("/api/tasks/TSK-404").status_code == 404

    def test_list_with_query_and_status(self, client):
        _create(client, "Draft invoice")
        _create(client, "Call client")
        _create(client, "Send invoice", status="done")

        data = client.get("/api/tasks?q=invoice").get_json()
        assert data["count"] == 2
        data = client.get("/api/tasks?status=done").get_json()
        assert [t["title"] for t in data["tasks"]] == ["Send invoice"]

    def test_list_unknown_status_is_400(self, client):
        assert client.get("/api/tasks?status=archived").status_code == 400

    def test_board_has_five_columns(self, client):
        _create(client, "Draft invoice")
        _create(client, "Send invoice", status="done")
        data = client.get("/api/board").get_json()
        assert set(data["columns"]) == {"todo", "in_progress", "review", "done", "cancelled"}
        assert data["counts"]["todo"] == 1
        assert data["completion"] == {"total": 2, "completed": 1, "percentage": 50}

    def test_delete(self, client):
        _create(client, "Draft invoice")
        resp = client.delete("/api/tasks/TSK-001")
        assert resp.get_json() == {"success": True, "id": "TSK-001"}
        assert client.delete("/api/tasks/TSK-001").status_code == 404


class TestStatusPatch:

    def test_move(self, client):
        _create(client, "Draft invoice")
        resp = client.patch("/api/tasks/TSK-001", json={"status": "review", "expected_status": "todo"})
        assert resp.status_code == 200
        assert resp.get_json()["task"]["status"] == "review"

    def test_stale_expected_status_is_409(self, client):
        _create(client, "Draft invoice", status="done")
        resp = client.patch("/api/tasks/TSK-001", json={"status": "review", "expected_status": "todo"})
        assert resp.status_code == 409
        assert resp.get_json()["current_status"] == "done"

    def test_locked_is_422(self, app, client):
        _create(client, "Archived")
        app.config["TASK_DB"].lock("TSK-001")
        resp = client.patch("/api/tasks/TSK-001", json={"status": "done"})
        assert resp.status_code == 422

    def test_missing_status_is_400(self, client):
        _create(client, "Draft invoice")
        assert client.patch("/api/tasks/TSK-001", json={}).status_code == 400

    def test_unknown_status_is_400(self, client):
        _create(client, "Draft invoice")
        assert client.patch("/api/tasks/TSK-001", json={"status": "archived"}).status_code == 400

    def test_missing_task_is_404(self, client):
        assert client.patch("/api/tasks/TSK-404", json={"status": "done"}).status_code == 404


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Gateway against the real API
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


class _ClientSession:
    """Routes the gateway's requests calls into the Flask test client."""

    def __init__(self, client, base_url):
        self.client = client
        self.base_url = base_url

    def _path(self, url):
        return url[len(self.base_url):]

    def get(self, url, timeout=None):
        return _ClientResponse(self.client.get(self._path(url)))

    def patch(self, url, json=None, timeout=None):
        return _ClientResponse(self.client.patch(self._path(url), json=json))


class _ClientResponse:

    def __init__(self, resp):
        self._resp = resp
        self.status_code = resp.status_code
        self.ok = resp.status_code < 400

    def json(self):
        body = self._resp.get_json()
        if body is None:
            raise ValueError("response is not JSON")
        return body

    def raise_for_status(self):
        if not self.ok:
            raise AssertionError(f"unexpected status {self.status_code}")


class TestGatewayAgainstApi:

    BASE = "http://api.test"

    def _gateway(self, client):
        return HttpTransitionGateway(self.BASE, session=_ClientSession(client, self.BASE))

    def test_board_move_persists(self, client):
        _create(client, "Draft invoice")
        gateway = self._gateway(client)
        board = TaskBoard(gateway, loader=gateway.fetch_tasks)
        board.refresh()

        async def scenario():
            board.drag_start("TSK-001")
            board.drop(TaskStatus.IN_PROGRESS)
            await board.wait_idle()

        asyncio.run(scenario())
        assert board.store.get("TSK-001").status == TaskStatus.IN_PROGRESS
        assert client.get("/api/tasks/TSK-001").get_json()["task"]["status"] == "in_progress"

    def test_concurrent_edit_rolls_back(self, client):
        _create(client, "Draft invoice")
        gateway = self._gateway(client)
        board = TaskBoard(gateway, loader=gateway.fetch_tasks)
        board.refresh()

        # Someone else moves it first
        client.patch("/api/tasks/TSK-001", json={"status": "done"})

        async def scenario():
            board.drag_start("TSK-001")
            board.drop(TaskStatus.REVIEW)
            await board.wait_idle()

        asyncio.run(scenario())
        assert board.store.get("TSK-001").status == TaskStatus.TODO
        assert board.notifications.active()[0].kind == "conflict"

    def test_conflict_and_validation_mapping(self, app, client):
        _create(client, "Draft invoice", status="done")
        _create(client, "Archived")
        app.config["TASK_DB"].lock("TSK-002")
        gateway = self._gateway(client)

        with pytest.raises(Conflict) as exc:
            asyncio.run(gateway.request_transition("TSK-001", TaskStatus.TODO, TaskStatus.REVIEW))
        assert exc.value.current_status == TaskStatus.DONE

        with pytest.raises(ValidationError):
            asyncio.run(gateway.request_transition("TSK-002", TaskStatus.TODO, TaskStatus.DONE))
