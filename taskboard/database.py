"""
Task storage backend (SQLite) behind the task API.

Provides CRUD operations plus an atomic compare-and-set status update used
for lost-update detection: a client sends the status it believed was current
and the update only applies if that is still true.
"""
import logging
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from .projection import TaskFilters, matches_query
from .schema import BOARD_COLUMNS, Task, TaskStatus

logger = logging.getLogger(__name__)

_COLUMN_RANK = {status.value: i for i, status in enumerate(BOARD_COLUMNS)}


class TaskNotFound(LookupError):
    """No task with that id."""
    pass


class TaskLocked(Exception):
    """The task is locked (archived) and cannot change status."""
    pass


class StatusConflict(Exception):
    """The task's current status differs from the expected one."""

    def __init__(self, task_id: str, expected: TaskStatus, current: TaskStatus):
        super().__init__(
            f"Task {task_id} is {current.value}, expected {expected.value}"
        )
        self.expected = expected
        self.current = current


def _connect(db_path: str) -> sqlite3.Connection:
    """Open a connection with WAL mode and dict-like rows."""
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode = WAL")
    return conn


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class TaskDatabase:
    """SQLite-backed store for board tasks."""

    def __init__(self, db_path: str):
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _init_schema(self):
        """Create tables if they don't exist."""
        with _connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT,
                    status TEXT NOT NULL DEFAULT 'todo',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    assignee_id TEXT,
                    case_id TEXT,
                    due_date TEXT,           -- YYYY-MM-DD
                    completed_at TEXT,
                    board_order INTEGER NOT NULL DEFAULT 0,
                    locked INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_tasks_case ON tasks(case_id)")
            conn.commit()

    def next_task_id(self) -> str:
        """Next sequential id (TSK-001, TSK-002, ...). Single-writer safe."""
        with _connect(self.db_path) as conn:
            rows = conn.execute("SELECT id FROM tasks WHERE id LIKE 'TSK-%'").fetchall()
        highest = 0
        for row in rows:
            try:
                highest = max(highest, int(row["id"].split("-", 1)[1]))
            except (IndexError, ValueError):
                continue
        return f"TSK-{highest + 1:03d}"

    def _next_order(self, conn: sqlite3.Connection, status: TaskStatus) -> int:
        row = conn.execute(
            "SELECT COALESCE(MAX(board_order), -1) + 1 FROM tasks WHERE status = ?",
            (status.value,),
        ).fetchone()
        return int(row[0])

    def add(self, task: Task) -> Task:
        """Insert a task at the end of its column."""
        data = task.to_dict()
        with _connect(self.db_path) as conn:
            conn.execute("""
                INSERT INTO tasks
                (id, title, description, status, priority, assignee_id, case_id,
                 due_date, completed_at, board_order, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                data["id"],
                data["title"],
                data["description"],
                data["status"],
                data["priority"],
                data["assignee_id"],
                data["case_id"],
                data["due_date"],
                data["completed_at"],
                self._next_order(conn, task.status),
                data["created_at"],
                data["updated_at"],
            ))
            conn.commit()
        logger.info(f"Task {task.id} created in {task.status.value}")
        return task

    def get(self, task_id: str) -> Task:
        with _connect(self.db_path) as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
        if not row:
            raise TaskNotFound(task_id)
        return Task.from_dict(dict(row))

    def list(
        self,
        status: Optional[TaskStatus] = None,
        search: str = "",
        filters: Optional[TaskFilters] = None,
    ) -> List[Task]:
        """Tasks ordered by column, then board order, then creation time."""
        with _connect(self.db_path) as conn:
            if status:
                rows = conn.execute(
                    "SELECT * FROM tasks WHERE status = ? ORDER BY board_order ASC, created_at ASC",
                    (status.value,),
                ).fetchall()
            else:
                rows = conn.execute(
                    "SELECT * FROM tasks ORDER BY board_order ASC, created_at ASC"
                ).fetchall()

        tasks = [Task.from_dict(dict(r)) for r in rows]
        tasks.sort(key=lambda t: _COLUMN_RANK[t.status.value])
        if search.strip():
            tasks = [t for t in tasks if matches_query(t, search)]
        if filters is not None:
            tasks = [t for t in tasks if filters.matches(t)]
        return tasks

    def update_status(
        self,
        task_id: str,
        new_status: TaskStatus,
        expected: Optional[TaskStatus] = None,
    ) -> Task:
        """
        Move a task to ``new_status`` (end of that column).

        With ``expected`` set, the move only applies if the stored status
        still equals it; otherwise StatusConflict is raised.
        Raises TaskNotFound and TaskLocked as appropriate.
        """
        now = _now()
        with _connect(self.db_path) as conn:
            row = conn.execute(
                "SELECT status, locked, completed_at FROM tasks WHERE id = ?", (task_id,)
            ).fetchone()
            if not row:
                raise TaskNotFound(task_id)
            current = TaskStatus(row["status"])
            if row["locked"]:
                raise TaskLocked(f"Task {task_id} is locked")
            if expected is not None and current != expected:
                raise StatusConflict(task_id, expected, current)

            completed_at = row["completed_at"]
            if new_status == TaskStatus.DONE:
                completed_at = completed_at or now
            else:
                completed_at = None

            # Compare-and-set on the status we just read
            cur = conn.execute("""
                UPDATE tasks
                SET status = ?, board_order = ?, completed_at = ?, updated_at = ?
                WHERE id = ? AND status = ?
            """, (
                new_status.value,
                self._next_order(conn, new_status),
                completed_at,
                now,
                task_id,
                current.value,
            ))
            if cur.rowcount == 0:
                latest = conn.execute("SELECT status FROM tasks WHERE id = ?", (task_id,)).fetchone()
                raise StatusConflict(task_id, expected or current, TaskStatus(latest["status"]))
            conn.commit()

        logger.info(f"Task {task_id}: {current.value} → {new_status.value}")
        return self.get(task_id)

    def lock(self, task_id: str, locked: bool = True) -> None:
        """Lock (archive) or unlock a task. Locked tasks reject status changes."""
        with _connect(self.db_path) as conn:
            cur = conn.execute(
                "UPDATE tasks SET locked = ?, updated_at = ? WHERE id = ?",
                (1 if locked else 0, _now(), task_id),
            )
            conn.commit()
        if cur.rowcount == 0:
            raise TaskNotFound(task_id)

    def delete(self, task_id: str) -> None:
        with _connect(self.db_path) as conn:
            cur = conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))
            conn.commit()
        if cur.rowcount == 0:
            raise TaskNotFound(task_id)
        logger.info(f"Task {task_id} deleted")
