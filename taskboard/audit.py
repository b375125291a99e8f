"""
Audit trail for board moves.

Appends one JSON line per drag outcome (optimistic apply, confirmed,
rolled back, superseded) so a session's moves can be reconstructed.
"""
import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def utc_now() -> str:
    """ISO-8601 UTC timestamp."""
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


class AuditLogger:
    """Appends structured JSON audit entries to a .jsonl file."""

    def __init__(self, log_path: Optional[Path]):
        self.log_path = Path(log_path) if log_path else None

    def log(
        self,
        task_id: str,
        from_status: str,
        to_status: str,
        outcome: str,
        **extra,
    ) -> None:
        """Append one audit entry. Extra kwargs are merged in."""
        if self.log_path is None:
            return

        entry = {
            "ts": utc_now(),
            "task_id": task_id,
            "from": from_status,
            "to": to_status,
            "outcome": outcome,
        }
        for k, v in extra.items():
            if v is not None:
                entry[k] = v

        try:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(json.dumps(entry, ensure_ascii=False) + "\n")
        except OSError as e:
            logger.error(f"Audit log write failed: {e}")
