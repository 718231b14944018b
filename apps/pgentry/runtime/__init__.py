"""Runtime startup orchestration for the container entrypoint."""

from .lifecycle import LifecycleController, LifecyclePhase, LifecycleState, build_controller

__all__ = ["LifecycleController", "LifecyclePhase", "LifecycleState", "build_controller"]
