from __future__ import annotations

import logging
import os
from pathlib import Path

from pgentry.errors import LifecycleError, LifecycleErrorCode

logger = logging.getLogger(__name__)


class DataDirectory:
    """Filesystem view of PGDATA used before the server owns it."""

    def __init__(self, path: Path, *, version_marker: str = "PG_VERSION") -> None:
        self.path = path
        self.marker_path = path / version_marker

    def is_initialized(self) -> bool:
        """True when the version marker exists and is non-empty."""
        try:
            return self.marker_path.is_file() and self.marker_path.stat().st_size > 0
        except OSError:
            return False

    def ensure_exists(self) -> None:
        try:
            if os.path.isdir(self.path):
                return
            logger.info("pgdata_create", extra={"path": str(self.path)})
            self.path.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise LifecycleError(
                LifecycleErrorCode.FILESYSTEM,
                f"Failed to create PGDATA directory {self.path}: {exc}",
                step="create_data_directory",
                cause=exc,
            ) from exc

    def ensure_writable(self) -> None:
        if not os.path.isdir(self.path) or not os.access(self.path, os.W_OK | os.X_OK):
            raise LifecycleError(
                LifecycleErrorCode.FILESYSTEM,
                f"PGDATA directory is not writable: {self.path}",
                step="verify_data_directory",
            )
