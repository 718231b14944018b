"""Configuration model for the container entrypoint."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from .errors import LifecycleError, LifecycleErrorCode

DEFAULT_PASSWORD = "postgres"
DEFAULT_CONFIG_DIR = "/etc/postgresql"
DEFAULT_START_TIMEOUT_SECONDS = 60.0
DEFAULT_LOG_BACKLOG_LINES = 10


@dataclass(frozen=True)
class EntrypointConfig:
    """Everything the lifecycle controller needs, resolved once at startup.

    ``data_dir`` is the only required field. Optional fields and their
    fallbacks are listed in ``DEFAULTS`` keyed by environment variable.
    """

    data_dir: Path
    password: str = DEFAULT_PASSWORD
    config_dir: Path = Path(DEFAULT_CONFIG_DIR)
    start_timeout_seconds: float = DEFAULT_START_TIMEOUT_SECONDS
    log_backlog_lines: int = DEFAULT_LOG_BACKLOG_LINES
    superuser: str = "postgres"
    encoding: str = "UTF8"
    locale: str = "en_US.UTF-8"
    version_marker: str = "PG_VERSION"
    log_filename: str = "postgresql.log"
    config_fragments: tuple[str, ...] = ("postgresql.conf", "pg_hba.conf")
    required_binaries: tuple[str, ...] = ("postgres", "pg_ctl")

    DEFAULTS = {
        "POSTGRES_PASSWORD": DEFAULT_PASSWORD,
        "PGENTRY_CONFIG_DIR": DEFAULT_CONFIG_DIR,
        "PGENTRY_START_TIMEOUT": str(DEFAULT_START_TIMEOUT_SECONDS),
        "PGENTRY_LOG_BACKLOG_LINES": str(DEFAULT_LOG_BACKLOG_LINES),
    }

    @property
    def marker_path(self) -> Path:
        return self.data_dir / self.version_marker

    @property
    def log_path(self) -> Path:
        return self.data_dir / self.log_filename

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "EntrypointConfig":
        """Build config from environment variables.

        Empty values count as unset, so ``PGDATA=""`` is rejected and
        ``POSTGRES_PASSWORD=""`` falls back to the default.
        """

        env = os.environ if environ is None else environ

        data_dir = env.get("PGDATA", "")
        if not data_dir:
            raise LifecycleError(
                LifecycleErrorCode.CONFIGURATION,
                "PGDATA environment variable is not set",
                step="validate_environment",
            )

        def _get(name: str) -> str:
            return env.get(name) or cls.DEFAULTS[name]

        return cls(
            data_dir=Path(data_dir),
            password=_get("POSTGRES_PASSWORD"),
            config_dir=Path(_get("PGENTRY_CONFIG_DIR")),
            start_timeout_seconds=_parse_number("PGENTRY_START_TIMEOUT", _get("PGENTRY_START_TIMEOUT"), float, minimum=1),
            log_backlog_lines=_parse_number("PGENTRY_LOG_BACKLOG_LINES", _get("PGENTRY_LOG_BACKLOG_LINES"), int),
        )


def _parse_number(name: str, raw: str, kind: type, minimum: float = 0) -> float | int:
    try:
        value = kind(raw)
    except ValueError as exc:
        raise LifecycleError(
            LifecycleErrorCode.CONFIGURATION,
            f"{name} must be a number, got {raw!r}",
            step="validate_environment",
            cause=exc,
        ) from exc
    if not math.isfinite(value) or value < minimum:
        raise LifecycleError(
            LifecycleErrorCode.CONFIGURATION,
            f"{name} must be a finite number >= {minimum:g}, got {raw!r}",
            step="validate_environment",
        )
    return value
