"""Logging helpers for the Cloud CLI MCP server."""

from __future__ import annotations

import logging
import sys
import threading
from pathlib import Path

from cloud_cli_mcp.config import load_settings

_logging_configured = False
_logging_lock = threading.Lock()

_logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"

# MCP log level names mapped onto stdlib levels; "trace" has no stdlib equivalent.
MCP_LOG_LEVELS: dict[str, int] = {
    "trace": logging.DEBUG,
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

PACKAGE_LOGGER = "cloud_cli_mcp"


def configure_logging() -> None:
    """Configure structured logging for the server.

    Everything goes to stderr (and optionally a file): stdout belongs to the
    stdio JSON-RPC transport.
    """
    global _logging_configured

    settings = load_settings()
    level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
    handlers.append(stream_handler)

    if settings.logging.file:
        try:
            Path(settings.logging.file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(settings.logging.file)
            file_handler.setFormatter(logging.Formatter(_LOG_FORMAT, datefmt=_DATE_FORMAT))
            handlers.append(file_handler)
        except OSError as exc:
            _logger.warning("Failed to open log file %s: %s", settings.logging.file, exc)

    logging.basicConfig(level=level, handlers=handlers, force=True)

    _logging_configured = True


def get_logger(name: str) -> logging.Logger:
    if not _logging_configured:
        with _logging_lock:
            if not _logging_configured:
                configure_logging()
    return logging.getLogger(name)


def normalize_mcp_level(level: object) -> str | None:
    if not isinstance(level, str):
        return None
    normalized = level.strip().lower()
    return normalized if normalized in MCP_LOG_LEVELS else None


def set_mcp_log_level(level: str) -> None:
    """Apply an MCP ``logging/setLevel`` value to the package logger."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(MCP_LOG_LEVELS[level])
