"""Logging configuration for face registration."""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler
from pathlib import Path

ROOT_LOGGER_NAME = "face_register"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level(log_level: str | int) -> int:
    """Convert a level name such as ``"debug"`` to its numeric value."""
    if isinstance(log_level, int):
        return log_level
    return getattr(logging, log_level.upper(), logging.INFO)


def setup_logging(
    log_level: str | int = logging.INFO,
    log_file: Path | str | None = None,
    log_to_console: bool = True,
) -> logging.Logger:
    """Set up the package logger.

    Calling this again replaces the previously installed handlers, so the CLI
    can reconfigure logging after the import-time default.

    Args:
        log_level: Logging level (string or int).
        log_file: Optional path to a rotating log file.
        log_to_console: Whether to log to stderr.

    Returns:
        Configured package logger.
    """
    level = _resolve_level(log_level)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(level)
    logger.handlers.clear()

    formatter = logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT)

    if log_to_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(level)
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            log_path,
            maxBytes=5 * 1024 * 1024,  # 5MB
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def get_logger(name: str | None = None) -> logging.Logger:
    """Get a child of the package logger.

    Args:
        name: Component name, e.g. ``"session"``.

    Returns:
        Logger instance.
    """
    if name:
        return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
    return logging.getLogger(ROOT_LOGGER_NAME)


class SessionLoggerAdapter(logging.LoggerAdapter):
    """Tags records with the registration session they belong to.

    Messages are prefixed with ``[session <id>]`` and every record carries a
    ``session_id`` attribute, so interleaved sessions served by one process
    can be told apart in a shared log file.
    """

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return f"[session {self.extra['session_id']}] {msg}", kwargs


def get_session_logger(session_id: str) -> SessionLoggerAdapter:
    """Get the session component logger bound to ``session_id``."""
    return SessionLoggerAdapter(get_logger("session"), {"session_id": session_id})


_default_logger = setup_logging(
    log_level=os.getenv("LOG_LEVEL", "INFO"),
    log_file=os.getenv("LOG_FILE"),
    log_to_console=True,
)
