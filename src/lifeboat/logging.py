"""Logging setup for processes that run recoveries.

Lifeboat modules only create loggers; the embedding process decides where
records go by calling ``configure_logging`` once at startup:

    from lifeboat.logging import configure_logging
    configure_logging(log_file="/var/log/lifeboat/recovery.log")

The console level is WARNING unless something asks for more. In priority
order: the ``level`` argument, LIFEBOAT_LOG_LEVEL, LIFEBOAT_DEBUG=true, the
``debug`` argument, then ``debug: true`` in the loaded config.

An audit file, when given, always receives DEBUG records so every step
attempt and rollback of a recovery can be reconstructed afterwards.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path

_DEBUG_FORMAT = "%(asctime)s %(name)s [%(levelname)s] %(message)s"
_DEFAULT_FORMAT = "%(name)s: %(message)s"

# Quieted even at DEBUG
_NOISY_LOGGERS = ("asyncio",)

_AUDIT_MAX_BYTES = 10 * 1024 * 1024
_AUDIT_BACKUPS = 5

_TRUTHY = ("true", "1", "yes")


def configure_logging(
    *,
    debug: bool = False,
    level: int | str | None = None,
    stream: object = None,
    log_file: str | Path | None = None,
) -> None:
    """Install console (and optional audit file) handlers on the root logger.

    Args:
        debug: Ask for DEBUG on the console
        level: Explicit console level, int or name; beats everything else
        stream: Console stream (default: stderr)
        log_file: Rotating audit file that captures DEBUG and above
    """
    console_level = _resolve_level(debug, level)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG if log_file else console_level)
    root.handlers.clear()

    console = logging.StreamHandler(stream or sys.stderr)
    console.setLevel(console_level)
    console.setFormatter(
        logging.Formatter(_DEBUG_FORMAT if console_level <= logging.DEBUG else _DEFAULT_FORMAT)
    )
    root.addHandler(console)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        audit = RotatingFileHandler(
            path,
            maxBytes=_AUDIT_MAX_BYTES,
            backupCount=_AUDIT_BACKUPS,
            encoding="utf-8",
        )
        audit.setLevel(logging.DEBUG)
        audit.setFormatter(logging.Formatter(_DEBUG_FORMAT))
        root.addHandler(audit)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        "Logging configured: console=%s, audit_file=%s",
        logging.getLevelName(console_level),
        log_file,
    )


def _resolve_level(debug: bool, level: int | str | None) -> int:
    if level is not None:
        return _parse_level(level)
    if env_level := os.environ.get("LIFEBOAT_LOG_LEVEL"):
        return _parse_level(env_level)
    if os.environ.get("LIFEBOAT_DEBUG", "").lower() in _TRUTHY:
        return logging.DEBUG
    if debug or _config_debug():
        return logging.DEBUG
    return logging.WARNING


def _config_debug() -> bool:
    from lifeboat.config import get_config

    try:
        return get_config().debug
    except Exception as e:
        # Logging must come up even when the config file is broken
        sys.stderr.write(f"Warning: Could not read debug flag from config: {e}\n")
        return False


def _parse_level(level: int | str) -> int:
    """Parse log level from int or string."""
    if isinstance(level, int):
        return level
    numeric = getattr(logging, level.upper(), None)
    if isinstance(numeric, int):
        return numeric
    try:
        return int(level)
    except ValueError:
        return logging.WARNING
