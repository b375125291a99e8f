"""Tests for YAML + environment configuration loading."""

import pytest

from taskboard.config import Config, ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for var in ("TASKBOARD_CONFIG", "TASKBOARD_API_URL", "TASKBOARD_DB", "TASKBOARD_AUDIT_LOG"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


def test_defaults_when_no_file():
    cfg = Config.load()
    assert cfg.api_url == "http://127.0.0.1:3000"
    assert cfg.port == 3000
    assert cfg.audit_log == ""
    assert "~" not in cfg.db_path


def test_loads_yaml_from_working_directory(tmp_path):
    (tmp_path / "taskboard.yaml").write_text(
        "api_url: http://tasks.internal:8080\n"
        "request_timeout: 1.5\n"
        "port: 4000\n"
        "unknown_key: ignored\n"
    )
    cfg = Config.load()
    assert cfg.api_url == "http://tasks.internal:8080"
    assert cfg.request_timeout == 1.5
    assert cfg.port == 4000


def test_explicit_path_via_env(tmp_path, monkeypatch):
    path = tmp_path / "custom.yaml"
    path.write_text("log_level: DEBUG\n")
    monkeypatch.setenv("TASKBOARD_CONFIG", str(path))
    assert Config.load().log_level == "DEBUG"


def test_env_overrides_file(tmp_path, monkeypatch):
    (tmp_path / "taskboard.yaml").write_text("api_url: http://from-file\n")
    monkeypatch.setenv("TASKBOARD_API_URL", "http://from-env")
    monkeypatch.setenv("TASKBOARD_DB", str(tmp_path / "env.db"))
    cfg = Config.load()
    assert cfg.api_url == "http://from-env"
    assert cfg.db_path == str(tmp_path / "env.db")


def test_audit_log_path_expanded(tmp_path):
    (tmp_path / "taskboard.yaml").write_text("audit_log: ~/board-audit.jsonl\n")
    cfg = Config.load()
    assert cfg.audit_log.endswith("board-audit.jsonl")
    assert not cfg.audit_log.startswith("~")


def test_missing_explicit_file_is_error(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        Config.load(str(tmp_path / "nope.yaml"))


def test_invalid_yaml_is_error(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("api_url: [unclosed\n")
    with pytest.raises(ConfigError, match="Invalid YAML"):
        Config.load(str(path))


def test_non_mapping_is_error(tmp_path):
    path = tmp_path / "list.yaml"
    path.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        Config.load(str(path))
