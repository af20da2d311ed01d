"""Settings loaded from environment variables.

One Settings object for the whole app. Every value has a default so nothing
is required at import time.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

ENV_PREFIX = "TASKNOTES"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_list(name: str, default: List[str]) -> List[str]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return list(default)
    return [p.strip() for p in raw.replace(",", " ").split() if p.strip()]


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True)
class Settings:
    database_path: Path = Path("tasknotes.db")
    drafts_path: Path = Path("~/.tasknotes/drafts.json").expanduser()
    autosave_delay: float = 1.0
    trash_retention_days: int = 30
    purge_interval: float = 3600.0
    host: str = "127.0.0.1"
    port: int = 8080
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"


def load_settings() -> Settings:
    """Read settings from the current environment."""
    defaults = Settings()
    # DATABASE_PATH is honored unprefixed for container deployments
    db_path = _env_path(_k("DATABASE_PATH"), _env_path("DATABASE_PATH", defaults.database_path))
    return Settings(
        database_path=db_path,
        drafts_path=_env_path(_k("DRAFTS_PATH"), defaults.drafts_path),
        autosave_delay=max(0.0, _env_float(_k("AUTOSAVE_DELAY"), defaults.autosave_delay)),
        trash_retention_days=max(0, _env_int(_k("TRASH_RETENTION_DAYS"), defaults.trash_retention_days)),
        purge_interval=max(1.0, _env_float(_k("PURGE_INTERVAL"), defaults.purge_interval)),
        host=_env(_k("HOST"), defaults.host),
        port=_env_int(_k("PORT"), defaults.port),
        cors_origins=_env_list(_k("CORS_ORIGINS"), defaults.cors_origins),
        log_level=_env(_k("LOG_LEVEL"), defaults.log_level).upper(),
    )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Return the cached settings, loading them on first use."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next get_settings() re-reads the environment."""
    global _settings
    _settings = None
