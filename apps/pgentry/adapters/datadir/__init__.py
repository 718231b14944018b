"""PGDATA filesystem adapters."""

from .config_sync import ConfigSync, FragmentOutcome, FragmentResult, SyncMode
from .data_directory import DataDirectory

__all__ = [
    "ConfigSync",
    "DataDirectory",
    "FragmentOutcome",
    "FragmentResult",
    "SyncMode",
]
