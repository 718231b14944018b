from __future__ import annotations

import io
import threading
import time
from pathlib import Path

import pytest

from pgentry.services.supervise import LogFollower, LogOutputClosed


def _wait_for(predicate, timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def _start(follower: LogFollower) -> threading.Thread:
    thread = threading.Thread(target=follower.follow, daemon=True)
    thread.start()
    return thread


def test_emits_backlog_then_appended_lines(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"".join(f"line {i}\n".encode() for i in range(20)))
    output = io.BytesIO()
    follower = LogFollower(log_path, output=output, backlog_lines=3, poll_interval=0.01)

    thread = _start(follower)
    assert _wait_for(lambda: output.getvalue() == b"line 17\nline 18\nline 19\n")

    with open(log_path, "ab") as handle:
        handle.write(b"database system is ready to accept connections\n")
    assert _wait_for(lambda: output.getvalue().endswith(b"ready to accept connections\n"))

    follower.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()


def test_zero_backlog_starts_at_end(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"old\n")
    output = io.BytesIO()
    follower = LogFollower(log_path, output=output, backlog_lines=0, poll_interval=0.01)

    thread = _start(follower)
    with open(log_path, "ab") as handle:
        handle.write(b"new\n")
    assert _wait_for(lambda: output.getvalue() == b"new\n")

    follower.stop()
    thread.join(timeout=5)


def test_short_file_without_trailing_newline_is_emitted_whole(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"first\nsecond")
    output = io.BytesIO()
    stop = threading.Event()
    follower = LogFollower(log_path, output=output, backlog_lines=10, poll_interval=0.01, stop_event=stop)

    thread = _start(follower)
    assert _wait_for(lambda: output.getvalue() == b"first\nsecond")

    stop.set()
    thread.join(timeout=5)
    assert not thread.is_alive()


def test_follow_ends_when_log_is_removed(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"starting\n")
    output = io.BytesIO()
    follower = LogFollower(log_path, output=output, poll_interval=0.01)

    thread = _start(follower)
    assert _wait_for(lambda: output.getvalue() == b"starting\n")
    log_path.unlink()

    thread.join(timeout=5)
    assert not thread.is_alive()


def test_follow_ends_when_log_is_replaced(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"before rotation\n")
    output = io.BytesIO()
    follower = LogFollower(log_path, output=output, poll_interval=0.01)

    thread = _start(follower)
    assert _wait_for(lambda: output.getvalue() == b"before rotation\n")
    log_path.rename(tmp_path / "postgresql.log.1")
    log_path.write_bytes(b"fresh file\n")

    thread.join(timeout=5)
    assert not thread.is_alive()
    assert b"fresh file" not in output.getvalue()


def test_truncated_log_is_read_from_the_start(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"a fairly long line written before truncation\n")
    output = io.BytesIO()
    follower = LogFollower(log_path, output=output, poll_interval=0.01)

    thread = _start(follower)
    assert _wait_for(lambda: output.getvalue().endswith(b"before truncation\n"))
    with open(log_path, "r+b") as handle:
        handle.truncate(0)
    with open(log_path, "ab") as handle:
        handle.write(b"restarted\n")
    assert _wait_for(lambda: output.getvalue().endswith(b"restarted\n"))

    follower.stop()
    thread.join(timeout=5)
    assert not thread.is_alive()


class ClosedOutput(io.BytesIO):
    def write(self, data: bytes) -> int:
        raise BrokenPipeError(32, "Broken pipe")


def test_closed_output_raises_log_output_closed(tmp_path: Path) -> None:
    log_path = tmp_path / "postgresql.log"
    log_path.write_bytes(b"listening on IPv4 address\n")
    follower = LogFollower(log_path, output=ClosedOutput(), poll_interval=0.01)

    with pytest.raises(LogOutputClosed):
        follower.follow()
