"""Minimal MCP runtime: tool registry, JSON-RPC method dispatch and stdio loop."""

from __future__ import annotations

import asyncio
import inspect
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TextIO, cast

from pydantic import BaseModel

from cloud_cli_mcp.logging_utils import MCP_LOG_LEVELS, normalize_mcp_level, set_mcp_log_level
from cloud_cli_mcp.utils.serialization import dumps

logger = logging.getLogger(__name__)

PROTOCOL_VERSION = "2024-11-05"
SUPPORTED_PROTOCOL_VERSIONS = ("2024-11-05", "2025-03-26", "2025-06-18")

# JSON-RPC error codes
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
PARSE_ERROR = -32700


@dataclass
class ToolSpec:
    name: str
    description: str
    input_schema: dict[str, object]
    handler: Callable[[dict[str, object]], "ToolResult | Awaitable[ToolResult]"]


class ToolResult(BaseModel):
    content: list[dict[str, object]]
    structured_content: dict[str, object] | None = None
    error: dict[str, object] | None = None


def error_body(
    request_id: object,
    message: str,
    code: str | int = INTERNAL_ERROR,
    data: object | None = None,
) -> dict[str, object]:
    error: dict[str, object] = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": request_id, "error": error}


def result_body(request_id: object, result: object) -> dict[str, object]:
    return {"jsonrpc": "2.0", "id": request_id, "result": result}


class MCPServer:
    """Holds registered tools and answers MCP JSON-RPC messages.

    ``handle_message`` is shared by the stdio loop and the HTTP transport.
    """

    def __init__(self, name: str, version: str, instructions: str) -> None:
        self.name = name
        self.version = version
        self.instructions = instructions
        self.log_level = "info"
        self._tools: dict[str, ToolSpec] = {}

    def add_tool(self, tool: ToolSpec) -> None:
        self._tools[tool.name] = tool

    @property
    def tools(self) -> dict[str, ToolSpec]:
        return dict(self._tools)

    async def call_tool(self, name: str, arguments: object) -> ToolResult:
        tool = self._tools[name]
        raw_result = tool.handler(cast(dict[str, object], arguments))
        if inspect.isawaitable(raw_result):
            result = await cast(Awaitable[ToolResult], raw_result)
        else:
            result = cast(ToolResult, raw_result)
        if not isinstance(result, ToolResult):
            raise TypeError("Tool handler did not return ToolResult")
        return result

    async def handle_message(self, payload: dict[str, object]) -> dict[str, object] | None:
        """Answer one JSON-RPC message; notifications and responses yield ``None``."""
        request_id = payload.get("id")
        method = payload.get("method")
        params = payload.get("params", {})
        params_dict = params if isinstance(params, dict) else {}

        if method is None and ("result" in payload or "error" in payload):
            return None
        if not isinstance(method, str):
            return error_body(request_id, "Invalid JSON-RPC method", code=INVALID_REQUEST)
        if method.startswith("notifications/") or method == "initialized":
            return None
        if request_id is None:
            return None

        if method == "initialize":
            requested = params_dict.get("protocolVersion")
            negotiated = (
                requested
                if isinstance(requested, str) and requested in SUPPORTED_PROTOCOL_VERSIONS
                else PROTOCOL_VERSION
            )
            return result_body(
                request_id,
                {
                    "protocolVersion": negotiated,
                    "capabilities": {
                        "tools": {"listChanged": False},
                        "logging": {
                            "supportsSetLevel": True,
                            "levels": list(MCP_LOG_LEVELS),
                        },
                    },
                    "serverInfo": {"name": self.name, "version": self.version},
                    "instructions": self.instructions,
                },
            )

        if method == "logging/setLevel":
            level = normalize_mcp_level(params_dict.get("level"))
            if level is None:
                return error_body(
                    request_id,
                    "Invalid log level",
                    code=INVALID_PARAMS,
                    data={"supportedLevels": list(MCP_LOG_LEVELS)},
                )
            set_mcp_log_level(level)
            self.log_level = level
            logger.info("Log level set to %s", level)
            return result_body(request_id, {"level": level})

        if method == "tools/list":
            tools = [
                {
                    "name": tool.name,
                    "description": tool.description,
                    "inputSchema": tool.input_schema,
                }
                for tool in self._tools.values()
            ]
            return result_body(request_id, {"tools": tools})

        if method == "tools/call":
            return await self._handle_tools_call(
                request_id, params_dict.get("name"), params_dict.get("arguments", {})
            )

        if method == "tool.invoke":
            return await self._handle_legacy_invoke(
                request_id, params_dict.get("toolName"), params_dict.get("args", {})
            )

        return error_body(request_id, "Method not found", code=METHOD_NOT_FOUND)

    async def _handle_tools_call(
        self, request_id: object, name: object, arguments: object
    ) -> dict[str, object]:
        if not isinstance(name, str) or name not in self._tools:
            return error_body(request_id, "Unknown tool", code=INVALID_PARAMS)
        try:
            result = await self.call_tool(name, arguments)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception:
            logger.exception("Tool handler error: %s", name)
            return error_body(request_id, "Internal tool error")

        if result.error is not None:
            message = result.error.get("message")
            return error_body(
                request_id,
                message if isinstance(message, str) else "Command failed",
                code=INTERNAL_ERROR,
                data=result.error,
            )
        return result_body(
            request_id,
            {"content": result.content, "structuredContent": result.structured_content},
        )

    async def _handle_legacy_invoke(
        self, request_id: object, name: object, arguments: object
    ) -> dict[str, object]:
        if not isinstance(name, str) or name not in self._tools:
            return error_body(request_id, "Tool not found", code="tool_not_found")
        try:
            result = await self.call_tool(name, arguments)
        except (KeyboardInterrupt, SystemExit):
            raise
        except Exception as exc:
            logger.exception("Tool handler error: %s", name)
            return error_body(request_id, str(exc) or "Internal error", code="internal_error")
        if result.error is not None:
            return {"jsonrpc": "2.0", "id": request_id, "error": result.error}
        return result_body(request_id, result.structured_content or {})

    def run(self, stdin: TextIO | None = None, stdout: TextIO | None = None) -> None:
        """Serve newline-delimited JSON-RPC over stdio until EOF."""
        asyncio.run(self.serve_stdio(stdin or sys.stdin, stdout or sys.stdout))

    async def serve_stdio(self, stdin: TextIO, stdout: TextIO) -> None:
        """Each request runs as its own task so slow CLI calls do not block others."""
        loop = asyncio.get_running_loop()
        pending: set[asyncio.Task[None]] = set()
        while True:
            line = await loop.run_in_executor(None, stdin.readline)
            if not line:
                break
            line = line.strip()
            if not line:
                continue
            try:
                request = json.loads(line)
            except json.JSONDecodeError:
                self._write(stdout, error_body(None, "Parse error", code=PARSE_ERROR))
                continue
            if not isinstance(request, dict):
                self._write(
                    stdout, error_body(None, "Invalid JSON-RPC request", code=INVALID_REQUEST)
                )
                continue
            task = asyncio.create_task(self._respond(request, stdout))
            pending.add(task)
            task.add_done_callback(pending.discard)
        if pending:
            await asyncio.gather(*pending)

    async def _respond(self, request: dict[str, object], stdout: TextIO) -> None:
        response = await self.handle_message(request)
        if response is not None:
            self._write(stdout, response)

    @staticmethod
    def _write(stdout: TextIO, payload: dict[str, object]) -> None:
        stdout.write(dumps(payload) + "\n")
        stdout.flush()
