"""Error taxonomy shared by the executor, dispatcher and transports."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "validation_error"
    MISSING_SUBSCRIPTION = "missing_subscription"
    MISSING_ENVIRONMENT = "missing_environment"
    AUTH_REQUIRED = "auth_required"
    PERMISSION_DENIED = "permission_denied"
    NOT_FOUND = "not_found"
    COMMAND_FAILED = "command_failed"
    TIMEOUT = "timeout"
    SPAWN_ERROR = "spawn_error"
    INTERNAL_ERROR = "internal_error"
    UNSUPPORTED_ACTION = "unsupported_action"


@dataclass(frozen=True)
class CloudError:
    code: str
    message: str
    detail: object | None = None

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {"code": self.code, "message": self.message}
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


def build_error(code: ErrorCode | str, message: str, detail: object | None = None) -> CloudError:
    return CloudError(code=ErrorCode(code).value, message=message, detail=detail)


AUTH_REQUIRED_MESSAGE = "Authentication required. Run `litium-cloud auth login`."


def classify_error_text(text: str) -> tuple[ErrorCode, str]:
    """Map CLI diagnostic text onto an error code and a caller-facing message.

    The CLI has no structured error output, so this matches known phrases by
    case-insensitive substring. Order matters: the first match wins.
    """
    lowered = text.lower()
    stripped = text.strip()
    if "not logged in" in lowered or "login required" in lowered:
        return ErrorCode.AUTH_REQUIRED, AUTH_REQUIRED_MESSAGE
    if "permission" in lowered:
        return ErrorCode.PERMISSION_DENIED, "Permission denied."
    if "not found" in lowered:
        return ErrorCode.NOT_FOUND, "Resource not found."
    if "certificate" in lowered:
        return ErrorCode.AUTH_REQUIRED, "Certificate error. Re-login with service principal."
    if "forbidden" in lowered or "403" in lowered:
        return (
            ErrorCode.PERMISSION_DENIED,
            "Forbidden (403). " + (stripped or "Permission denied or resource not available."),
        )
    return ErrorCode.COMMAND_FAILED, stripped or "Command failed."
