"""Adapters around the packaged PostgreSQL executables."""

from .initdb import ClusterInitializer, CommandRunner, InitdbOptions
from .pg_ctl import ServerLauncher, require_binaries

__all__ = [
    "ClusterInitializer",
    "CommandRunner",
    "InitdbOptions",
    "ServerLauncher",
    "require_binaries",
]
