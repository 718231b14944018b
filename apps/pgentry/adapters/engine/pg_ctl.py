"""Server launch through ``pg_ctl`` and executable preconditions."""

from __future__ import annotations

import logging
import math
import shutil
import subprocess
from pathlib import Path
from typing import Callable, Iterable

from pgentry.errors import LifecycleError, LifecycleErrorCode

from .initdb import CommandRunner

logger = logging.getLogger(__name__)

# extra time granted to the subprocess beyond pg_ctl's own wait budget
TIMEOUT_GRACE_SECONDS = 15.0


def require_binaries(names: Iterable[str], which: Callable[[str], str | None] = shutil.which) -> dict[str, str]:
    """Resolve each executable on PATH or raise a packaging error."""
    resolved: dict[str, str] = {}
    for name in names:
        path = which(name)
        if not path:
            raise LifecycleError(
                LifecycleErrorCode.PACKAGING,
                f"{name} binary not found in PATH",
                step="verify_binaries",
            )
        resolved[name] = path
    return resolved


class ServerLauncher:
    """Starts the server and blocks until it accepts connections."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 60.0,
        executable: str = "pg_ctl",
        runner: CommandRunner = subprocess.run,
    ) -> None:
        self._timeout_seconds = timeout_seconds
        self._executable = executable
        self._runner = runner

    def build_command(self, data_dir: Path, log_path: Path) -> list[str]:
        return [
            self._executable,
            "-D",
            str(data_dir),
            "-w",
            "-t",
            str(max(1, math.ceil(self._timeout_seconds))),
            "-l",
            str(log_path),
            "start",
        ]

    def start(self, data_dir: Path, log_path: Path) -> None:
        command = self.build_command(data_dir, log_path)
        logger.info("server_start", extra={"data_dir": str(data_dir), "log_path": str(log_path)})
        try:
            proc = self._runner(command, check=False, timeout=self._timeout_seconds + TIMEOUT_GRACE_SECONDS)
        except subprocess.TimeoutExpired as exc:
            raise LifecycleError(
                LifecycleErrorCode.LAUNCH,
                f"{self._executable} did not return within {self._timeout_seconds:g}s",
                step="pg_ctl_start",
                cause=exc,
            ) from exc
        except FileNotFoundError as exc:
            raise LifecycleError(
                LifecycleErrorCode.PACKAGING,
                f"{self._executable} binary not found in PATH",
                step="pg_ctl_start",
                cause=exc,
            ) from exc
        except OSError as exc:
            raise LifecycleError(
                LifecycleErrorCode.LAUNCH,
                f"{self._executable} could not be executed: {exc}",
                step="pg_ctl_start",
                cause=exc,
            ) from exc

        if proc.returncode != 0:
            raise LifecycleError(
                LifecycleErrorCode.LAUNCH,
                f"Failed to start PostgreSQL with pg_ctl (exit code {proc.returncode}, see output above)",
                step="pg_ctl_start",
            )
        logger.info("server_ready", extra={"data_dir": str(data_dir)})
