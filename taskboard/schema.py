"""
Task schema for the legal-practice task board.

Board columns (fixed, not user-configurable):
  To Do → In Progress → Review → Done | Cancelled

Any column can move to any other column by drag and drop; the backend is
the one that may reject a move (locked or archived tasks).
"""
import re
from enum import Enum
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import Optional, List, Dict, Any


class TaskValidationError(ValueError):
    """Raised when task data fails validation."""
    pass


class TaskStatus(Enum):
    """Board columns, in display order."""
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"
    CANCELLED = "cancelled"

    @classmethod
    def from_str(cls, value: str) -> "TaskStatus":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            raise TaskValidationError(f"Invalid status: {value!r}")


class TaskPriority(Enum):
    """Priority levels. MEDIUM is the default and is not badged on cards."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @classmethod
    def from_str(cls, value: str) -> "TaskPriority":
        try:
            return cls(value.strip().lower())
        except (ValueError, AttributeError):
            raise TaskValidationError(f"Invalid priority: {value!r}")


BOARD_COLUMNS: tuple = tuple(TaskStatus)

STATUS_LABELS: Dict[TaskStatus, str] = {
    TaskStatus.TODO: "To Do",
    TaskStatus.IN_PROGRESS: "In Progress",
    TaskStatus.REVIEW: "Review",
    TaskStatus.DONE: "Done",
    TaskStatus.CANCELLED: "Cancelled",
}

PRIORITY_LABELS: Dict[TaskPriority, str] = {
    TaskPriority.LOW: "Low",
    TaskPriority.MEDIUM: "Medium",
    TaskPriority.HIGH: "High",
    TaskPriority.URGENT: "Urgent",
}

# Limits applied to tasks created or edited through the API
TITLE_MIN_LENGTH = 3
TITLE_MAX_LENGTH = 200
DESCRIPTION_MAX_LENGTH = 1000

_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_due_date(value: Any) -> Optional[date]:
    """Parse a YYYY-MM-DD due date. Empty values mean no due date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _DATE_RE.match(text):
        raise TaskValidationError(f"Invalid date format: {value!r} (expected YYYY-MM-DD)")
    try:
        return date.fromisoformat(text)
    except ValueError:
        raise TaskValidationError(f"Invalid date: {value!r}")


@dataclass
class Task:
    """One card on the board."""

    # Identity
    id: str

    # Content
    title: str
    description: Optional[str] = None

    # Board placement
    status: TaskStatus = TaskStatus.TODO
    priority: TaskPriority = TaskPriority.MEDIUM

    # Links
    assignee_id: Optional[str] = None
    case_id: Optional[str] = None

    # Scheduling
    due_date: Optional[date] = None
    completed_at: Optional[datetime] = None

    # Metadata
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    def __post_init__(self):
        if not isinstance(self.title, str) or not self.title.strip():
            raise TaskValidationError(f"Task {self.id!r} must have a non-empty title")
        if not isinstance(self.status, TaskStatus):
            self.status = TaskStatus.from_str(self.status)
        if not isinstance(self.priority, TaskPriority):
            self.priority = TaskPriority.from_str(self.priority)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "status": self.status.value,
            "priority": self.priority.value,
            "assignee_id": self.assignee_id,
            "case_id": self.case_id,
            "due_date": self.due_date.isoformat() if self.due_date else None,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        """Deserialize from dict (API payload or database row)."""
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            description=data.get("description") or None,
            status=TaskStatus.from_str(data.get("status") or "todo"),
            priority=TaskPriority.from_str(data.get("priority") or "medium"),
            assignee_id=data.get("assignee_id") or None,
            case_id=data.get("case_id") or None,
            due_date=parse_due_date(data.get("due_date")),
            completed_at=_parse_datetime(data.get("completed_at")),
            created_at=_parse_datetime(data.get("created_at")) or _utc_now(),
            updated_at=_parse_datetime(data.get("updated_at")) or _utc_now(),
        )


def validate_task_input(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and coerce a create/edit payload.

    Returns:
        dict with title, description, status, priority, due_date,
        assignee_id and case_id, coerced to their schema types.

    Raises:
        TaskValidationError with a user-friendly message on failure.
    """
    title = str(data.get("title") or "").strip()
    if len(title) < TITLE_MIN_LENGTH:
        raise TaskValidationError(f"Title must be at least {TITLE_MIN_LENGTH} characters")
    if len(title) > TITLE_MAX_LENGTH:
        raise TaskValidationError("Title too long")

    description = data.get("description") or None
    if description is not None:
        description = str(description)
        if len(description) > DESCRIPTION_MAX_LENGTH:
            raise TaskValidationError("Description too long")

    return {
        "title": title,
        "description": description,
        "status": TaskStatus.from_str(data.get("status") or "todo"),
        "priority": TaskPriority.from_str(data.get("priority") or "medium"),
        "due_date": parse_due_date(data.get("due_date")),
        "assignee_id": data.get("assignee_id") or None,
        "case_id": data.get("case_id") or None,
    }


def is_overdue(task: Task, today: Optional[date] = None) -> bool:
    """Open task whose due date has passed."""
    if task.due_date is None or task.status in (TaskStatus.DONE, TaskStatus.CANCELLED):
        return False
    today = today or date.today()
    return task.due_date < today


def completion(tasks: List[Task]) -> Dict[str, int]:
    """Completion stats: total, completed (done) and rounded percentage."""
    total = len(tasks)
    completed = sum(1 for t in tasks if t.status == TaskStatus.DONE)
    percentage = int(completed * 100 / total + 0.5) if total else 0
    return {"total": total, "completed": completed, "percentage": percentage}
