"""Copy mounted configuration fragments into the data directory."""

from __future__ import annotations

import logging
import os
import shutil
import stat
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Iterable

from pgentry.errors import LifecycleError, LifecycleErrorCode

logger = logging.getLogger(__name__)

CopyFn = Callable[[Path, Path], object]


class SyncMode(str, Enum):
    STRICT = "strict"
    BEST_EFFORT = "best_effort"


class FragmentOutcome(str, Enum):
    COPIED = "copied"
    ABSENT = "absent"
    FAILED = "failed"


@dataclass(frozen=True)
class FragmentResult:
    name: str
    outcome: FragmentOutcome
    error: str | None = None


class ConfigSync:
    """Overwrites PGDATA copies of staged fragments on every run.

    In ``STRICT`` mode (first-time initialization) a failed copy raises.
    In ``BEST_EFFORT`` mode (restart of an existing cluster) it is logged and
    the previously persisted copy stays in place.
    """

    def __init__(
        self,
        *,
        staging_dir: Path,
        data_dir: Path,
        fragments: Iterable[str],
        copy_fn: CopyFn = shutil.copyfile,
    ) -> None:
        self._staging_dir = staging_dir
        self._data_dir = data_dir
        self._fragments = tuple(fragments)
        self._copy_fn = copy_fn

    def sync(self, mode: SyncMode) -> list[FragmentResult]:
        return [self._sync_fragment(name, mode) for name in self._fragments]

    def _sync_fragment(self, name: str, mode: SyncMode) -> FragmentResult:
        source = self._staging_dir / name
        target = self._data_dir / name

        try:
            present = _is_regular_file(source)
            if present:
                logger.info(
                    "config_fragment_copy",
                    extra={"fragment": name, "source": str(source), "target": str(target), "mode": mode.value},
                )
                self._copy_fn(source, target)
        except OSError as exc:
            if mode == SyncMode.STRICT:
                raise LifecycleError(
                    LifecycleErrorCode.CONFIG_SYNC,
                    f"Failed to copy {name}: {exc}",
                    step=f"copy_{name}",
                    cause=exc,
                ) from exc
            logger.warning(
                "config_fragment_update_failed_keeping_existing",
                extra={"fragment": name, "error": str(exc)},
            )
            return FragmentResult(name, FragmentOutcome.FAILED, error=str(exc))

        if not present:
            if mode == SyncMode.STRICT:
                logger.info(
                    "config_fragment_absent_using_defaults",
                    extra={"fragment": name, "staging_dir": str(self._staging_dir)},
                )
            return FragmentResult(name, FragmentOutcome.ABSENT)

        logger.info("config_fragment_copied", extra={"fragment": name})
        return FragmentResult(name, FragmentOutcome.COPIED)


def _is_regular_file(path: Path) -> bool:
    """Like ``Path.is_file`` but lets permission errors through."""
    try:
        st = os.stat(path)
    except (FileNotFoundError, NotADirectoryError):
        return False
    return stat.S_ISREG(st.st_mode)
