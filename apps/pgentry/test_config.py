from __future__ import annotations

from pathlib import Path

import pytest

from pgentry.config import EntrypointConfig
from pgentry.errors import LifecycleError, LifecycleErrorCode


def test_from_env_applies_defaults() -> None:
    config = EntrypointConfig.from_env({"PGDATA": "/var/lib/postgresql/data"})

    assert config.data_dir == Path("/var/lib/postgresql/data")
    assert config.password == "postgres"
    assert config.config_dir == Path("/etc/postgresql")
    assert config.start_timeout_seconds == 60.0
    assert config.log_backlog_lines == 10
    assert config.marker_path == Path("/var/lib/postgresql/data/PG_VERSION")
    assert config.log_path == Path("/var/lib/postgresql/data/postgresql.log")


def test_from_env_reads_overrides() -> None:
    config = EntrypointConfig.from_env(
        {
            "PGDATA": "/data",
            "POSTGRES_PASSWORD": "hunter2",
            "PGENTRY_CONFIG_DIR": "/config",
            "PGENTRY_START_TIMEOUT": "120",
            "PGENTRY_LOG_BACKLOG_LINES": "0",
        }
    )

    assert config.password == "hunter2"
    assert config.config_dir == Path("/config")
    assert config.start_timeout_seconds == 120.0
    assert config.log_backlog_lines == 0


def test_empty_password_falls_back_to_default() -> None:
    config = EntrypointConfig.from_env({"PGDATA": "/data", "POSTGRES_PASSWORD": ""})

    assert config.password == "postgres"


@pytest.mark.parametrize("environ", [{}, {"PGDATA": ""}])
def test_missing_pgdata_is_configuration_error(environ: dict[str, str]) -> None:
    with pytest.raises(LifecycleError) as excinfo:
        EntrypointConfig.from_env(environ)

    assert excinfo.value.code == LifecycleErrorCode.CONFIGURATION
    assert excinfo.value.exit_code == 2
    assert "PGDATA" in str(excinfo.value)


@pytest.mark.parametrize("value", ["soon", "-1", "nan", "inf", "0.5"])
def test_invalid_timeout_is_configuration_error(value: str) -> None:
    with pytest.raises(LifecycleError) as excinfo:
        EntrypointConfig.from_env({"PGDATA": "/data", "PGENTRY_START_TIMEOUT": value})

    assert excinfo.value.code == LifecycleErrorCode.CONFIGURATION


@pytest.mark.parametrize("value", ["nan", "-3"])
def test_invalid_backlog_is_configuration_error(value: str) -> None:
    with pytest.raises(LifecycleError) as excinfo:
        EntrypointConfig.from_env({"PGDATA": "/data", "PGENTRY_LOG_BACKLOG_LINES": value})

    assert excinfo.value.code == LifecycleErrorCode.CONFIGURATION
