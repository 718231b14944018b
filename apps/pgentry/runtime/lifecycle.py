"""Container lifecycle controller: initialize, configure, launch, supervise."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Iterable, Protocol

from pgentry.adapters.datadir import ConfigSync, DataDirectory, FragmentResult, SyncMode
from pgentry.adapters.engine import ClusterInitializer, InitdbOptions, ServerLauncher, require_binaries
from pgentry.config import EntrypointConfig
from pgentry.errors import LifecycleError, LifecycleErrorCode
from pgentry.services.supervise import LogFollower, LogOutputClosed

logger = logging.getLogger(__name__)


class LifecyclePhase(str, Enum):
    START = "start"
    CHECK_INITIALIZED = "check_initialized"
    UNINIT_PATH = "uninit_path"
    INIT_PATH = "init_path"
    CONFIG_SYNC = "config_sync"
    PRECONDITION_CHECK = "precondition_check"
    LAUNCH = "launch"
    SUPERVISE = "supervise"
    STOPPED = "stopped"
    FAILED = "failed"


class SupportsInitialize(Protocol):
    def initialize(self, data_dir: Path, password: str) -> Any: ...


class SupportsLaunch(Protocol):
    def start(self, data_dir: Path, log_path: Path) -> Any: ...


class SupportsFollow(Protocol):
    def follow(self) -> Any: ...


StatePublisher = Callable[["LifecycleState"], None]
BinaryResolver = Callable[[Iterable[str]], Any]


@dataclass(slots=True)
class LifecycleState:
    phase: LifecyclePhase = LifecyclePhase.START
    already_initialized: bool | None = None
    cluster_initialized: bool = False
    config_synced: bool = False
    fragments: list[FragmentResult] = field(default_factory=list)
    binaries_ready: bool = False
    server_ready: bool = False
    last_error: dict[str, str] | None = None

    def to_payload(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "startup": {
                "already_initialized": self.already_initialized,
                "cluster_initialized": self.cluster_initialized,
                "config_synced": self.config_synced,
                "binaries": self.binaries_ready,
                "server": self.server_ready,
            },
            "fragments": {item.name: item.outcome.value for item in self.fragments},
            "last_error": self.last_error,
        }


def log_state(state: LifecycleState) -> None:
    logger.debug("lifecycle_state", extra={"phase": state.phase.value, "state": state.to_payload()})


@dataclass(slots=True)
class LifecycleController:
    """Brings one server from unknown state to accepting connections.

    Phases run strictly in order. Any ``LifecycleError`` marks the state
    ``FAILED`` and propagates unchanged to the caller, which owns the single
    exit path. The one tolerated failure is a configuration refresh on an
    already initialized cluster.
    """

    config: EntrypointConfig
    initializer: SupportsInitialize
    launcher: SupportsLaunch
    follower_factory: Callable[[EntrypointConfig], SupportsFollow]
    config_sync: ConfigSync | None = None
    data_directory: DataDirectory | None = None
    binary_resolver: BinaryResolver = require_binaries
    state_publisher: StatePublisher = log_state

    _state: LifecycleState = field(default_factory=LifecycleState, init=False)

    def __post_init__(self) -> None:
        if self.data_directory is None:
            self.data_directory = DataDirectory(self.config.data_dir, version_marker=self.config.version_marker)
        if self.config_sync is None:
            self.config_sync = ConfigSync(
                staging_dir=self.config.config_dir,
                data_dir=self.config.data_dir,
                fragments=self.config.config_fragments,
            )

    @property
    def state(self) -> LifecycleState:
        return self._state

    def run(self) -> None:
        """Prepare and launch the server, then block streaming its log."""
        self.prepare()
        self.supervise()

    def prepare(self) -> None:
        """Run every phase up to and including LAUNCH."""
        try:
            logger.info("entrypoint_start", extra={"pgdata": str(self.config.data_dir)})
            if self.check_initialized():
                self._enter(LifecyclePhase.INIT_PATH)
                self.sync_configuration(SyncMode.BEST_EFFORT)
            else:
                self._enter(LifecyclePhase.UNINIT_PATH)
                self.initialize_cluster()
                self.sync_configuration(SyncMode.STRICT)
                logger.info("first_time_initialization_complete")
            self.check_preconditions()
            self.launch()
        except LifecycleError as exc:
            self._fail(exc)
            raise

    def check_initialized(self) -> bool:
        self._enter(LifecyclePhase.CHECK_INITIALIZED)
        initialized = self.data_directory.is_initialized()
        self._state.already_initialized = initialized
        if initialized:
            logger.info("database_already_initialized", extra={"marker": str(self.data_directory.marker_path)})
        else:
            logger.info("database_not_initialized", extra={"pgdata": str(self.config.data_dir)})
        return initialized

    def initialize_cluster(self) -> None:
        self.data_directory.ensure_exists()
        self.data_directory.ensure_writable()
        self.initializer.initialize(self.config.data_dir, self.config.password)
        self._state.cluster_initialized = True
        self._publish()

    def sync_configuration(self, mode: SyncMode) -> list[FragmentResult]:
        self._enter(LifecyclePhase.CONFIG_SYNC)
        results = self.config_sync.sync(mode)
        self._state.fragments = results
        self._state.config_synced = True
        self._publish()
        return results

    def check_preconditions(self) -> None:
        self._enter(LifecyclePhase.PRECONDITION_CHECK)
        self.binary_resolver(self.config.required_binaries)
        self._state.binaries_ready = True
        self._publish()

    def launch(self) -> None:
        self._enter(LifecyclePhase.LAUNCH)
        self.launcher.start(self.config.data_dir, self.config.log_path)
        self._state.server_ready = True
        self._publish()
        logger.info("server_accepting_connections", extra={"log_path": str(self.config.log_path)})

    def supervise(self) -> None:
        self._enter(LifecyclePhase.SUPERVISE)
        follower = self.follower_factory(self.config)
        try:
            follower.follow()
        except LogOutputClosed as exc:
            error = LifecycleError(
                LifecycleErrorCode.SUPERVISE,
                str(exc),
                step="write_log_output",
                cause=exc,
            )
            self._fail(error)
            raise error from exc
        except OSError as exc:
            error = LifecycleError(
                LifecycleErrorCode.SUPERVISE,
                f"Cannot read server log {self.config.log_path}: {exc}",
                step="follow_server_log",
                cause=exc,
            )
            self._fail(error)
            raise error from exc
        self._enter(LifecyclePhase.STOPPED)

    def _enter(self, phase: LifecyclePhase) -> None:
        self._state.phase = phase
        self._publish()

    def _fail(self, exc: LifecycleError) -> None:
        self._state.last_error = exc.to_payload()
        self._state.phase = LifecyclePhase.FAILED
        self._state.server_ready = False
        self._publish()

    def _publish(self) -> None:
        self.state_publisher(self._state)


def build_controller(
    config: EntrypointConfig,
    *,
    output: BinaryIO,
    state_publisher: StatePublisher = log_state,
) -> LifecycleController:
    """Wire the controller to the real executables and filesystem."""

    def _follower(cfg: EntrypointConfig) -> LogFollower:
        return LogFollower(cfg.log_path, output=output, backlog_lines=cfg.log_backlog_lines)

    return LifecycleController(
        config=config,
        initializer=ClusterInitializer(
            options=InitdbOptions(encoding=config.encoding, locale=config.locale, username=config.superuser),
        ),
        launcher=ServerLauncher(timeout_seconds=config.start_timeout_seconds),
        follower_factory=_follower,
        state_publisher=state_publisher,
    )
