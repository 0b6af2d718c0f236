from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Dict, Tuple


DEFAULT_DATABASE_URL = "sqlite:///./kanban.db"
DEFAULT_TASK_STATUSES = ("todo", "doing", "done")
DEFAULT_CORS_ORIGINS = ("http://localhost:5000",)


def _split(value: str) -> Tuple[str, ...]:
    return tuple(part.strip() for part in value.split(",") if part.strip())


def _flag(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _token_map(value: str) -> Dict[str, str]:
    tokens: Dict[str, str] = {}
    for entry in _split(value):
        token, sep, user_id = entry.partition(":")
        if not sep or not token.strip() or not user_id.strip():
            raise ValueError(f"KANBAN_AUTH_TOKENS entry must be token:user, got {entry!r}")
        tokens[token.strip()] = user_id.strip()
    return tokens


@dataclass(frozen=True)
class Settings:
    database_url: str = DEFAULT_DATABASE_URL
    task_statuses: Tuple[str, ...] = DEFAULT_TASK_STATUSES
    optimistic_locking: bool = False
    auth_tokens: Dict[str, str] = field(default_factory=dict)
    cors_origins: Tuple[str, ...] = DEFAULT_CORS_ORIGINS
    host: str = "0.0.0.0"
    port: int = 5000
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        env = os.environ
        statuses = _split(env.get("KANBAN_TASK_STATUSES", "")) or DEFAULT_TASK_STATUSES
        origins = _split(env.get("KANBAN_CORS_ORIGINS", "")) or DEFAULT_CORS_ORIGINS
        return cls(
            database_url=env.get("DATABASE_URL", DEFAULT_DATABASE_URL),
            task_statuses=statuses,
            optimistic_locking=_flag(env.get("KANBAN_OPTIMISTIC_LOCKING", "")),
            auth_tokens=_token_map(env.get("KANBAN_AUTH_TOKENS", "")),
            cors_origins=origins,
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", "5000")),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings.from_env()
