import pytest

from kanban.config import DEFAULT_TASK_STATUSES, Settings


def test_defaults(monkeypatch):
    for name in ("DATABASE_URL", "KANBAN_TASK_STATUSES", "KANBAN_OPTIMISTIC_LOCKING", "KANBAN_AUTH_TOKENS", "PORT"):
        monkeypatch.delenv(name, raising=False)
    settings = Settings.from_env()
    assert settings.database_url == "sqlite:///./kanban.db"
    assert settings.task_statuses == DEFAULT_TASK_STATUSES
    assert settings.optimistic_locking is False
    assert settings.auth_tokens == {}
    assert settings.port == 5000


def test_from_env(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "memory://")
    monkeypatch.setenv("KANBAN_TASK_STATUSES", "To do, Doing ,Done")
    monkeypatch.setenv("KANBAN_OPTIMISTIC_LOCKING", "true")
    monkeypatch.setenv("KANBAN_AUTH_TOKENS", "abc:alice, def:bob")
    monkeypatch.setenv("LOG_LEVEL", "debug")
    settings = Settings.from_env()
    assert settings.database_url == "memory://"
    assert settings.task_statuses == ("To do", "Doing", "Done")
    assert settings.optimistic_locking is True
    assert settings.auth_tokens == {"abc": "alice", "def": "bob"}
    assert settings.log_level == "DEBUG"


def test_malformed_token_map(monkeypatch):
    monkeypatch.setenv("KANBAN_AUTH_TOKENS", "just-a-token")
    with pytest.raises(ValueError):
        Settings.from_env()
