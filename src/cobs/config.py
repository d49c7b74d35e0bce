from __future__ import annotations

"""Settings loader driven by environment variables.

``get_settings`` reads the ``COBS_*`` environment variables once and caches the
resulting ``Settings`` object.  Tests that modify the environment call
``reset_settings_cache`` to force a reload.
"""

from dataclasses import dataclass
import os
from functools import lru_cache


@dataclass
class Settings:
    backend: str = "events"
    db_dsn: str = "sqlite+aiosqlite:///.db/cobs.db"
    stream: str = "cobs"
    source_path: str = "SourceData.txt"
    results_dir: str = "CObsResults"
    work_dir: str = "."
    log_level: str = "INFO"
    engine: str = ""


@lru_cache()
def get_settings() -> Settings:
    """Return settings loaded from environment variables."""

    backend = os.getenv("COBS_BACKEND", "events").lower()
    if backend not in {"events", "file"}:
        raise ValueError(f"COBS_BACKEND must be 'events' or 'file', got {backend!r}")
    return Settings(
        backend=backend,
        db_dsn=os.getenv("COBS_DB_DSN", "sqlite+aiosqlite:///.db/cobs.db"),
        stream=os.getenv("COBS_STREAM", "cobs"),
        source_path=os.getenv("COBS_SOURCE_PATH", "SourceData.txt"),
        results_dir=os.getenv("COBS_RESULTS_DIR", "CObsResults"),
        work_dir=os.getenv("COBS_WORK_DIR", "."),
        log_level=os.getenv("COBS_LOG_LEVEL", "INFO").upper(),
        engine=os.getenv("COBS_ENGINE", ""),
    )


def reset_settings_cache() -> None:
    """Clear the settings cache (mainly for tests)."""

    get_settings.cache_clear()
