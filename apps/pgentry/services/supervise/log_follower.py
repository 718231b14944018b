"""Foreground log streaming that binds the container lifetime to the server log."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import BinaryIO

logger = logging.getLogger(__name__)

READ_CHUNK_BYTES = 64 * 1024


class LogOutputClosed(RuntimeError):
    """Raised when forwarded log bytes can no longer be written."""


class LogFollower:
    """Follows a growing log file and forwards bytes to ``output``.

    Behaves like ``tail -f``: the last ``backlog_lines`` lines are emitted
    first, then new data as it is appended. At EOF the follower sleeps on
    ``stop_event`` for ``poll_interval`` seconds. Following ends when the
    file is removed or replaced, or when ``stop_event`` is set. Server
    liveness is not checked.
    """

    def __init__(
        self,
        path: Path,
        *,
        output: BinaryIO,
        backlog_lines: int = 10,
        poll_interval: float = 0.5,
        stop_event: threading.Event | None = None,
    ) -> None:
        self._path = path
        self._output = output
        self._backlog_lines = backlog_lines
        self._poll_interval = poll_interval
        self._stop_event = stop_event or threading.Event()

    def stop(self) -> None:
        self._stop_event.set()

    def follow(self) -> None:
        with open(self._path, "rb") as handle:
            inode = os.fstat(handle.fileno()).st_ino
            handle.seek(_backlog_offset(handle, self._backlog_lines))
            logger.debug("log_follow_start", extra={"path": str(self._path)})

            while not self._stop_event.is_set():
                if self._forward(handle):
                    continue
                if self._replaced(inode):
                    self._forward(handle)
                    logger.info("log_follow_end", extra={"path": str(self._path), "reason": "file_replaced"})
                    return
                if handle.tell() > os.fstat(handle.fileno()).st_size:
                    handle.seek(0)
                    continue
                self._stop_event.wait(self._poll_interval)

        logger.info("log_follow_end", extra={"path": str(self._path), "reason": "stopped"})

    def _forward(self, handle: BinaryIO) -> bool:
        chunk = handle.read(READ_CHUNK_BYTES)
        if not chunk:
            return False
        try:
            self._output.write(chunk)
            self._output.flush()
        except OSError as exc:
            raise LogOutputClosed(f"cannot write server log to output: {exc}") from exc
        return True

    def _replaced(self, inode: int) -> bool:
        try:
            return os.stat(self._path).st_ino != inode
        except FileNotFoundError:
            return True


def _backlog_offset(handle: BinaryIO, lines: int) -> int:
    """Byte offset where the last ``lines`` lines of ``handle`` begin."""
    end = handle.seek(0, os.SEEK_END)
    if lines <= 0 or end == 0:
        return end

    position = end
    # a trailing newline terminates the last line rather than starting a new one
    handle.seek(end - 1)
    newlines_needed = lines + 1 if handle.read(1) == b"\n" else lines
    while position > 0:
        step = min(READ_CHUNK_BYTES, position)
        position -= step
        handle.seek(position)
        block = handle.read(step)
        for index in range(len(block) - 1, -1, -1):
            if block[index] == 0x0A:
                newlines_needed -= 1
                if newlines_needed == 0:
                    return position + index + 1
    return 0
