"""
config.py
Runtime settings (read from environment variables).

Usage:
    export SPARKLEWASH_DB=/data/wash.db
    export OPENAI_API_KEY=sk-...
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

DEFAULT_DB_FILE = Path(__file__).with_name("sparklewash.db")


def _env(name: str, default: str | None = None) -> str | None:
    value = os.getenv(name)
    if value is None:
        return default
    value = value.strip()
    return value or default


@dataclass
class Settings:
    db_file: Path = DEFAULT_DB_FILE
    openai_api_key: str | None = field(default=None, repr=False)
    openai_base_url: str | None = None
    ai_model: str = "gpt-4o-mini"
    log_level: str = "INFO"
    currency: str = "TRY"


def get_settings() -> Settings:
    """Build settings from the current environment (re-read on every call)."""
    return Settings(
        db_file=Path(_env("SPARKLEWASH_DB", str(DEFAULT_DB_FILE))),
        openai_api_key=_env("OPENAI_API_KEY"),
        openai_base_url=_env("OPENAI_BASE_URL"),
        ai_model=_env("SPARKLEWASH_AI_MODEL", "gpt-4o-mini"),
        log_level=_env("SPARKLEWASH_LOG_LEVEL", "INFO").upper(),
        currency=_env("SPARKLEWASH_CURRENCY", "TRY"),
    )
