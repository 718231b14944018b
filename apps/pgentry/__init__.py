"""Lifecycle controller for a containerized PostgreSQL debug build."""

from .config import EntrypointConfig
from .errors import LifecycleError, LifecycleErrorCode

__all__ = ["EntrypointConfig", "LifecycleError", "LifecycleErrorCode"]
