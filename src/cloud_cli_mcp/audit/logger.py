"""Bounded in-memory audit trail for tool invocations."""

from __future__ import annotations

import logging
import re
import time
import uuid
from collections import deque
from collections.abc import Mapping
from typing import cast

from cloud_cli_mcp.audit.models import AuditLogEntry
from cloud_cli_mcp.utils.masking import redact_sensitive_fields
from cloud_cli_mcp.utils.serialization import dumps

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
DEFAULT_RECENT_LIMIT = 50
_MAX_DETAIL_CHARS = 500

# Control character pattern for log injection prevention.
_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0a-\x1f\x7f]")


def _sanitize_log_value(value: str) -> str:
    """Replace control characters (newlines, tabs, etc.) to prevent log injection."""
    return _CONTROL_CHAR_RE.sub("_", value)


def new_correlation_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}"


def sanitize_args(args: object) -> dict[str, object]:
    """Return a redacted copy of tool arguments suitable for the audit trail."""
    if not isinstance(args, Mapping):
        return {} if args is None else {"raw": redact_sensitive_fields(args)}
    return cast(dict[str, object], redact_sensitive_fields(dict(args)))


class AuditLogger:
    """FIFO ring buffer of :class:`AuditLogEntry` records.

    Appends never await, so concurrent tool calls on one event loop cannot
    interleave inside ``log``.
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self._entries: deque[AuditLogEntry] = deque(maxlen=capacity)

    @property
    def capacity(self) -> int:
        return cast(int, self._entries.maxlen)

    def __len__(self) -> int:
        return len(self._entries)

    def log(self, entry: AuditLogEntry) -> None:
        self._entries.append(entry)
        self._emit(entry)

    def get_recent(self, limit: int = DEFAULT_RECENT_LIMIT) -> list[AuditLogEntry]:
        """Return the newest ``limit`` entries, oldest first."""
        if limit <= 0:
            return []
        entries = list(self._entries)
        return entries[-limit:]

    def _emit(self, entry: AuditLogEntry) -> None:
        status = "OK" if entry.success else "FAIL"
        summary = (
            f"AUDIT {entry.timestamp} {entry.correlation_id} "
            f"{_sanitize_log_value(entry.action)} {status} {entry.duration_ms}ms"
        )
        if not entry.success:
            summary += f" | ERROR: {entry.error_code or 'unknown'}"
            if entry.error_message:
                summary += f" - {_sanitize_log_value(entry.error_message)}"
            logger.warning("%s", summary)
        else:
            logger.info("%s", summary)

        if not entry.success and entry.error_detail is not None:
            detail = entry.error_detail
            text = detail if isinstance(detail, str) else dumps(detail)
            if len(text) > _MAX_DETAIL_CHARS:
                text = text[:_MAX_DETAIL_CHARS] + "..."
            logger.warning(
                "AUDIT %s ERROR_DETAIL: %s", entry.correlation_id, _sanitize_log_value(text)
            )
