"""
Core logging functionality for bandlink.

Every log type gets its own file under ``config.LOG_DIR``; user-facing types
are echoed to stdout as well.
"""

import logging
from pathlib import Path
from typing import Dict, Optional

from . import config

# Re-export log type constants for external modules
LOG__GENERAL = config.LOG__GENERAL
LOG__DEBUG = config.LOG__DEBUG
LOG__USER = config.LOG__USER
LOG__AUTH = config.LOG__AUTH

_LOG_PATHS: Dict[str, Path] = {
    LOG__GENERAL: config.LOG_DIR / "general.log",
    LOG__DEBUG: config.LOG_DIR / "debug.log",
    LOG__USER: config.LOG_DIR / "usermode.log",
    LOG__AUTH: config.LOG_DIR / "auth.log",
}

# Raw message only, plus a timestamp
_formatter = logging.Formatter("%(asctime)s %(message)s")

_handlers: Dict[str, logging.Handler] = {}

# Root logger for bandlink
_logger = logging.getLogger("bandlink")
_logger.setLevel(logging.INFO)


def _handler_for(log_type: str) -> logging.Handler:
    # Files are opened on first use so that importing the package never
    # touches the filesystem.
    if log_type not in _LOG_PATHS:
        log_type = LOG__GENERAL
    handler = _handlers.get(log_type)
    if handler is None:
        path = _LOG_PATHS[log_type]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(path, mode="a", encoding="utf-8")
        except OSError:
            # read-only home, sandboxed test runs ...
            handler = logging.NullHandler()
        handler.setFormatter(_formatter)
        _handlers[log_type] = handler
    return handler


def _emit(line: str, log_type: str) -> None:
    """Internal helper to emit log records without altering the original message."""
    record = logging.LogRecord(
        name=f"bandlink.{log_type.lower()}",
        level=logging.INFO,
        pathname=__file__,
        lineno=0,
        msg=line.rstrip("\n"),
        args=(),
        exc_info=None,
    )
    _handler_for(log_type).handle(record)


def logging__debug_log(msg: str) -> None:
    """Write to debug log."""
    _emit(msg, LOG__DEBUG)


def logging__general_log(msg: str) -> None:
    """Write to general log."""
    _emit(msg, LOG__GENERAL)


def logging__usermode_log(msg: str) -> None:
    """Write to usermode log."""
    _emit(msg, LOG__USER)


def logging__auth_log(msg: str) -> None:
    """Write to authentication log."""
    _emit(msg, LOG__AUTH)


_log_func_map = {
    LOG__GENERAL: logging__general_log,
    LOG__DEBUG: logging__debug_log,
    LOG__USER: logging__usermode_log,
    LOG__AUTH: logging__auth_log,
}


def logging__log_event(log_type: str, string_to_log: str) -> None:
    """Log an event to the specified log type."""
    _log_func_map.get(log_type, logging__general_log)(string_to_log)


def print_and_log(output_string: str, log_type: str = LOG__GENERAL) -> None:
    """Print to stdout and log to the specified log type."""
    if log_type in (LOG__GENERAL, LOG__USER):
        print(output_string)
    logging__log_event(log_type, output_string)


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """Get a logger with the specified name.

    Records land in the GENERAL log file, filtered by the ``bandlink`` logger
    level.
    """
    if not _logger.handlers:
        _logger.addHandler(_handler_for(LOG__GENERAL))
    if name:
        if name.startswith("bandlink."):
            name = name[len("bandlink."):]
        return _logger.getChild(name)
    return _logger
