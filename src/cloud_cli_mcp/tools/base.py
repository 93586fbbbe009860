"""Tool result helpers."""

from __future__ import annotations

from dataclasses import dataclass

from cloud_cli_mcp.errors import CloudError, ErrorCode, build_error
from cloud_cli_mcp.mcp_runtime import ToolResult
from cloud_cli_mcp.utils.serialization import dumps


class ActionError(Exception):
    """Raised inside an action handler to end the call with a structured error."""

    def __init__(self, error: CloudError) -> None:
        super().__init__(error.message)
        self.error = error

    @classmethod
    def of(cls, code: ErrorCode, message: str, detail: object | None = None) -> ActionError:
        return cls(build_error(code, message, detail))


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    data: dict[str, object] | None = None
    error: CloudError | None = None

    @classmethod
    def success(cls, **data: object) -> ActionResult:
        return cls(ok=True, data=data)

    @classmethod
    def failure(cls, error: CloudError) -> ActionResult:
        return cls(ok=False, error=error)

    def to_dict(self) -> dict[str, object]:
        if self.ok or self.error is None:
            return {"ok": True, "data": self.data or {}}
        return {"ok": False, "error": self.error.to_dict()}


def result_from_action(result: ActionResult) -> ToolResult:
    if result.ok or result.error is None:
        payload = result.data or {}
        text = dumps(payload, indent=2)
        return ToolResult(content=[{"type": "text", "text": text}], structured_content=payload)
    error = result.error.to_dict()
    return ToolResult(
        content=[{"type": "text", "text": dumps(error, indent=2)}],
        structured_content=None,
        error=error,
    )
