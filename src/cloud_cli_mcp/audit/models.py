"""Data models for audit records."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class AuditLogEntry:
    timestamp: str
    correlation_id: str
    action: str
    args: dict[str, object] = field(default_factory=dict)
    duration_ms: int = 0
    success: bool = True
    error_code: str | None = None
    error_message: str | None = None
    error_detail: object | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "timestamp": self.timestamp,
            "correlationId": self.correlation_id,
            "action": self.action,
            "args": self.args,
            "durationMs": self.duration_ms,
            "success": self.success,
        }
        if self.error_code is not None:
            payload["errorCode"] = self.error_code
        if self.error_message is not None:
            payload["errorMessage"] = self.error_message
        if self.error_detail is not None:
            payload["errorDetail"] = self.error_detail
        return payload
