"""Runtime settings.

Defaults live on the models. Environment variables override them:
TRACECHAIN_<SECTION>__<FIELD>, e.g. TRACECHAIN_LEDGER__DATABASE_URL.
CLI flags, applied by the entrypoint, override the environment.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, Field

ENV_PREFIX = "TRACECHAIN_"

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./chain.db"


class LedgerSettings(BaseModel):
    database_url: str = DEFAULT_DATABASE_URL
    echo_sql: bool = False


class ScoringSettings(BaseModel):
    reconcile_mode: Literal["inline", "final"] = "inline"


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$")
    format: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"


class Settings(BaseModel):
    ledger: LedgerSettings = Field(default_factory=LedgerSettings)
    scoring: ScoringSettings = Field(default_factory=ScoringSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _env_overrides(environ: Mapping[str, str]) -> dict[str, dict[str, str]]:
    """Collect TRACECHAIN_SECTION__FIELD variables into nested dicts."""
    sections: dict[str, dict[str, str]] = {}
    for key, value in environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        section, sep, field = key[len(ENV_PREFIX):].lower().partition("__")
        if not sep or section not in Settings.model_fields:
            continue
        sections.setdefault(section, {})[field] = value
    return sections


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from defaults plus environment overrides.

    Raises:
        pydantic.ValidationError: an override has an invalid value.
    """
    if environ is None:
        environ = os.environ
    overrides = _env_overrides(environ)
    if "logging" in overrides and "level" in overrides["logging"]:
        overrides["logging"]["level"] = overrides["logging"]["level"].upper()
    return Settings.model_validate(overrides)


__all__ = [
    "DEFAULT_DATABASE_URL",
    "ENV_PREFIX",
    "LedgerSettings",
    "LoggingSettings",
    "ScoringSettings",
    "Settings",
    "load_settings",
]
