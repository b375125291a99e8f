# Taskboard — configuration
# Override via taskboard.yaml, TASKBOARD_* environment variables or CLI args.

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Optional

import yaml

CONFIG_PATH = Path("taskboard.yaml")


class ConfigError(Exception):
    """Raised when configuration is invalid or incomplete."""
    pass


@dataclass
class Config:
    """Runtime configuration for the board client and the task API."""

    # Client side
    api_url: str = "http://127.0.0.1:3000"
    request_timeout: float = 5.0

    # Server side
    db_path: str = "~/.local/share/taskboard/tasks.db"
    host: str = "127.0.0.1"
    port: int = 3000

    # Audit trail of board moves (empty = disabled)
    audit_log: str = ""

    log_level: str = "INFO"

    def resolve_paths(self):
        """Expand ~ in file paths."""
        self.db_path = str(Path(self.db_path).expanduser())
        if self.audit_log:
            self.audit_log = str(Path(self.audit_log).expanduser())

    def apply_env(self):
        """Environment variables win over the file."""
        if os.environ.get("TASKBOARD_API_URL"):
            self.api_url = os.environ["TASKBOARD_API_URL"]
        if os.environ.get("TASKBOARD_DB"):
            self.db_path = os.environ["TASKBOARD_DB"]
        if os.environ.get("TASKBOARD_AUDIT_LOG"):
            self.audit_log = os.environ["TASKBOARD_AUDIT_LOG"]

    @classmethod
    def load(cls, path: Optional[str] = None) -> "Config":
        """Load config from YAML file, falling back to defaults."""
        path = path or os.environ.get("TASKBOARD_CONFIG")
        cfg_path = Path(path) if path else CONFIG_PATH
        if cfg_path.exists():
            try:
                with open(cfg_path, "r") as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML in {cfg_path}: {e}") from e
            if not isinstance(data, dict):
                raise ConfigError(f"{cfg_path} must contain a mapping")
            known = {f.name for f in fields(cls)}
            try:
                cfg = cls(**{k: v for k, v in data.items() if k in known})
            except TypeError as e:
                raise ConfigError(f"Invalid config in {cfg_path}: {e}") from e
        elif path:
            raise ConfigError(f"Config file not found: {cfg_path}")
        else:
            cfg = cls()
        cfg.apply_env()
        cfg.resolve_paths()
        return cfg
