"""Container entrypoint command line.

Usage:
  pg-entrypoint [postgres ...]
  python -m pgentry --log-level DEBUG

Trailing arguments (the image's CMD) are accepted and ignored.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import Mapping, Sequence, TextIO

from .config import EntrypointConfig
from .errors import LifecycleError, LifecycleErrorCode
from .runtime.lifecycle import build_controller

logger = logging.getLogger("pgentry")

_RECORD_ATTRS = set(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class LineFormatter(logging.Formatter):
    """Renders ``[YYYY-mm-dd HH:MM:SS] LEVEL event key=value ...`` on one line."""

    def __init__(self) -> None:
        super().__init__(fmt="[%(asctime)s] %(levelname)s %(message)s", datefmt="%Y-%m-%d %H:%M:%S")

    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        fields = {key: value for key, value in vars(record).items() if key not in _RECORD_ATTRS}
        if fields:
            line += " " + " ".join(f"{key}={_render(value)}" for key, value in fields.items())
        return line.replace("\n", "\\n")


def _render(value: object) -> str:
    text = str(value)
    if not text or any(ch.isspace() for ch in text):
        return repr(text)
    return text


def configure_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(LineFormatter())
    root = logging.getLogger("pgentry")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False


LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pg-entrypoint", description="PostgreSQL container entrypoint")
    parser.add_argument("--log-level", choices=LOG_LEVELS, type=str.upper, help="Defaults to $PGENTRY_LOG_LEVEL or INFO.")
    parser.add_argument("command", nargs=argparse.REMAINDER, help="Container CMD; ignored.")
    return parser


def main(argv: Sequence[str] | None = None, environ: Mapping[str, str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    env = os.environ if environ is None else environ
    level = args.log_level or (env.get("PGENTRY_LOG_LEVEL") or "INFO").upper()
    if level not in LOG_LEVELS:
        configure_logging("INFO")
        error = LifecycleError(
            LifecycleErrorCode.CONFIGURATION,
            f"PGENTRY_LOG_LEVEL must be one of {', '.join(LOG_LEVELS)}, got {level!r}",
            step="validate_environment",
        )
        logger.error("entrypoint_failed", extra=error.to_payload())
        return error.exit_code

    configure_logging(level)
    if args.command:
        logger.debug("ignoring_container_command", extra={"command": " ".join(args.command)})

    try:
        config = EntrypointConfig.from_env(env)
        controller = build_controller(config, output=sys.stdout.buffer)
        controller.run()
    except LifecycleError as exc:
        logger.error("entrypoint_failed", extra=exc.to_payload())
        return exc.exit_code
    except KeyboardInterrupt:
        return 130
    except Exception as exc:  # noqa: BLE001
        logger.error("entrypoint_failed", extra={"code": "unexpected", "step": "unknown", "error": repr(exc)})
        return 1
    return 0
