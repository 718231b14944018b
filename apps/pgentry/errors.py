"""Error taxonomy for the container lifecycle controller."""

from __future__ import annotations

from enum import Enum


class LifecycleErrorCode(str, Enum):
    CONFIGURATION = "configuration"
    FILESYSTEM = "filesystem"
    INITIALIZATION = "initialization"
    CONFIG_SYNC = "config_sync"
    PACKAGING = "packaging"
    LAUNCH = "launch"
    SUPERVISE = "supervise"


EXIT_CODES: dict[LifecycleErrorCode, int] = {
    LifecycleErrorCode.CONFIGURATION: 2,
    LifecycleErrorCode.FILESYSTEM: 3,
    LifecycleErrorCode.INITIALIZATION: 4,
    LifecycleErrorCode.CONFIG_SYNC: 5,
    LifecycleErrorCode.PACKAGING: 6,
    LifecycleErrorCode.LAUNCH: 7,
    LifecycleErrorCode.SUPERVISE: 8,
}


class LifecycleError(Exception):
    """Fatal lifecycle failure tagged with the step that raised it."""

    def __init__(
        self,
        code: LifecycleErrorCode,
        message: str,
        *,
        step: str | None = None,
        cause: Exception | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.step = step or code.value
        self.cause = cause

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.code]

    def to_payload(self) -> dict[str, str]:
        return {"code": self.code.value, "step": self.step, "error": str(self)}
