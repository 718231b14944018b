"""One-time cluster initialization with an ephemeral credential handoff."""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from pgentry.errors import LifecycleError, LifecycleErrorCode

logger = logging.getLogger(__name__)

CommandRunner = Callable[..., "subprocess.CompletedProcess[Any]"]


@dataclass(frozen=True)
class InitdbOptions:
    encoding: str = "UTF8"
    locale: str = "en_US.UTF-8"
    username: str = "postgres"


class ClusterInitializer:
    """Runs ``initdb`` against an empty data directory.

    The superuser password is written into an anonymous pipe and handed to
    ``initdb`` as ``--pwfile=/dev/fd/N``, so it never lands in argv or on
    disk. Failure is fatal and nothing is cleaned up: a half-initialized
    directory must be removed by an operator before rerunning.
    """

    def __init__(
        self,
        *,
        options: InitdbOptions | None = None,
        executable: str = "initdb",
        runner: CommandRunner = subprocess.run,
    ) -> None:
        self._options = options or InitdbOptions()
        self._executable = executable
        self._runner = runner

    def build_command(self, data_dir: Path, pwfile_fd: int) -> list[str]:
        return [
            self._executable,
            "-D",
            str(data_dir),
            f"--encoding={self._options.encoding}",
            f"--locale={self._options.locale}",
            f"--username={self._options.username}",
            f"--pwfile=/dev/fd/{pwfile_fd}",
        ]

    def initialize(self, data_dir: Path, password: str) -> None:
        read_fd, write_fd = os.pipe()
        try:
            try:
                os.write(write_fd, (password + "\n").encode("utf-8"))
            finally:
                os.close(write_fd)

            command = self.build_command(data_dir, read_fd)
            logger.info("initdb_start", extra={"data_dir": str(data_dir), "username": self._options.username})
            try:
                proc = self._runner(command, pass_fds=(read_fd,), check=False)
            except FileNotFoundError as exc:
                raise LifecycleError(
                    LifecycleErrorCode.PACKAGING,
                    f"{self._executable} binary not found in PATH",
                    step="initdb",
                    cause=exc,
                ) from exc
            except OSError as exc:
                raise LifecycleError(
                    LifecycleErrorCode.INITIALIZATION,
                    f"initdb could not be executed: {exc}",
                    step="initdb",
                    cause=exc,
                ) from exc
        finally:
            os.close(read_fd)

        if proc.returncode != 0:
            raise LifecycleError(
                LifecycleErrorCode.INITIALIZATION,
                f"initdb failed with exit code {proc.returncode}",
                step="initdb",
            )
        logger.info("initdb_complete", extra={"data_dir": str(data_dir)})
