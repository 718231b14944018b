"""Post-launch supervision of the server log stream."""

from .log_follower import LogFollower, LogOutputClosed

__all__ = ["LogFollower", "LogOutputClosed"]
