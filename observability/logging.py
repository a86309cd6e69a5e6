"""Logging setup for story sessions.

Every record carries the story session id and the current turn number, so
one session's log lines can be pulled out of a shared log:

    21:04:13 [INFO] [a1b2c3d4#3] pipeline: Turn started | action='Open the study'

Output goes to the console and to a rotating `fable.log`, as text or as one
JSON object per line (LOG_FORMAT=json).

Usage:
    >>> from observability.logging import setup_logging, set_session_context
    >>> setup_logging(config)
    >>> set_session_context("a1b2c3d4")
    >>> logger.info("Turn started")  # Tagged with the session automatically
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler, TimedRotatingFileHandler
from typing import Any

LOG_FILE_NAME = "fable.log"

# Story session and turn for the running task
session_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("session_id", default="-")
turn_var: contextvars.ContextVar[int] = contextvars.ContextVar("turn", default=0)

# Attributes every LogRecord has; anything else was passed via `extra=`
_STANDARD_ATTRS = frozenset(vars(logging.makeLogRecord({}))) | {"message", "asctime", "session_id", "turn", "session_tag"}

NOISY_LOGGERS = ("aiohttp", "urllib3", "httpx", "httpcore", "asyncio", "chromadb", "sentence_transformers")


def set_session_context(session_id: str) -> None:
    """Tag subsequent log records with a story session id."""
    session_id_var.set(session_id)
    turn_var.set(0)


def set_turn_context(turn: int) -> None:
    turn_var.set(turn)


def clear_context() -> None:
    """Clear all logging context variables."""
    session_id_var.set("-")
    turn_var.set(0)


class ContextFilter(logging.Filter):
    """Adds `session_id` and `turn` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.session_id = session_id_var.get()
        record.turn = turn_var.get()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record.

    Output format:
        {"timestamp": "...", "level": "INFO", "logger": "...", "message": "...",
         "session_id": "...", "turn": 3, ...}

    Warnings and errors also carry their source location. Fields passed via
    `extra=` are included; values that are not JSON serializable are
    stringified.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "session_id": getattr(record, "session_id", "-"),
        }
        turn = getattr(record, "turn", 0)
        if turn:
            entry["turn"] = turn

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.filename}:{record.lineno} ({record.funcName})"
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key in _STANDARD_ATTRS:
                continue
            try:
                json.dumps(value)
                entry[key] = value
            except (TypeError, ValueError):
                entry[key] = str(value)

        return json.dumps(entry, ensure_ascii=False)


class TextFormatter(logging.Formatter):
    """Format: TIME [LEVEL] [session#turn] logger: message"""

    def __init__(self, include_date: bool = False):
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] [%(session_tag)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S" if include_date else "%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        session_id = getattr(record, "session_id", "-")
        turn = getattr(record, "turn", 0)
        record.session_tag = f"{session_id}#{turn}" if turn else session_id
        return super().format(record)


def _file_handler(config: Any) -> logging.Handler:
    """Rotating handler for `fable.log`: by size if LOG_MAX_BYTES > 0, else daily.

    Raises:
        OSError: If the log directory cannot be created or written
    """
    config.log_dir.mkdir(parents=True, exist_ok=True)
    probe = config.log_dir / ".write_test"
    probe.touch()
    probe.unlink()

    log_file = config.log_dir / LOG_FILE_NAME
    if config.log_max_bytes > 0:
        return RotatingFileHandler(
            log_file,
            maxBytes=config.log_max_bytes,
            backupCount=config.log_backup_count,
            encoding="utf-8",
        )
    return TimedRotatingFileHandler(
        log_file,
        when="midnight",
        backupCount=config.log_backup_count,
        encoding="utf-8",
    )


def setup_logging(config: Any, verbose: bool = False) -> bool:
    """Configure console and file logging.

    Falls back to console-only logging when the log directory is not
    writable.

    Args:
        config: Application configuration with logging settings
        verbose: If True, use DEBUG level for the console

    Returns:
        True if file logging is enabled, False if console-only
    """
    console_level = logging.DEBUG if verbose else getattr(logging, config.log_level, logging.INFO)
    context_filter = ContextFilter()

    if config.log_format == "json":
        console_fmt, file_fmt = JsonFormatter(), JsonFormatter()
    else:
        console_fmt, file_fmt = TextFormatter(), TextFormatter(include_date=True)

    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    for handler in root.handlers[:]:
        root.removeHandler(handler)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(console_level)
    console.setFormatter(console_fmt)
    console.addFilter(context_filter)
    root.addHandler(console)

    file_logging_enabled = False
    try:
        file_handler = _file_handler(config)
    except OSError as e:
        print(
            f"Warning: Cannot write to log directory '{config.log_dir}': {e}. "
            "Falling back to console-only logging.",
            file=sys.stderr,
        )
    else:
        file_handler.setLevel(logging.DEBUG)  # File always captures everything
        file_handler.setFormatter(file_fmt)
        file_handler.addFilter(context_filter)
        root.addHandler(file_handler)
        file_logging_enabled = True

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return file_logging_enabled
