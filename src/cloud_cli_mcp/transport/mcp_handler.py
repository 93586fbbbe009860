"""HTTP JSON-RPC handler for MCP messages."""

from __future__ import annotations

import json
import logging

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from cloud_cli_mcp.mcp_runtime import (
    INVALID_REQUEST,
    PARSE_ERROR,
    PROTOCOL_VERSION,
    MCPServer,
    error_body,
)
from cloud_cli_mcp.utils.serialization import json_default

logger = logging.getLogger(__name__)

MAX_BATCH_REQUESTS = 50


def _server(request: Request) -> MCPServer:
    return request.app.state.app_context.mcp_server


async def handle_mcp_request(request: Request) -> Response:
    if request.method == "OPTIONS":
        return Response(status_code=204)

    if request.method != "POST":
        return _error_response(None, "Method not allowed", status_code=405)

    try:
        payload = await request.json()
    except (json.JSONDecodeError, ValueError, UnicodeDecodeError):
        return _error_response(None, "Invalid JSON", code=PARSE_ERROR)

    if isinstance(payload, list):
        return await _handle_batch(payload, request)
    if not isinstance(payload, dict):
        return _error_response(None, "Invalid JSON-RPC request", code=INVALID_REQUEST)

    result = await _server(request).handle_message(payload)
    if result is None:
        return Response(status_code=202, headers={"MCP-Protocol-Version": PROTOCOL_VERSION})
    return _json_response(result, headers={"MCP-Protocol-Version": PROTOCOL_VERSION})


async def _handle_batch(payloads: list[object], request: Request) -> Response:
    if len(payloads) > MAX_BATCH_REQUESTS:
        return _error_response(
            None, f"Batch request too large (max {MAX_BATCH_REQUESTS})", code=INVALID_REQUEST
        )
    if not payloads:
        return _error_response(None, "Invalid JSON-RPC batch request", code=INVALID_REQUEST)

    server = _server(request)
    responses: list[dict[str, object]] = []
    for item in payloads:
        if not isinstance(item, dict):
            responses.append(
                error_body(None, "Invalid JSON-RPC batch entry", code=INVALID_REQUEST)
            )
            continue
        response = await server.handle_message(item)
        if response is not None:
            responses.append(response)

    if not responses:
        return Response(status_code=202, headers={"MCP-Protocol-Version": PROTOCOL_VERSION})
    return _json_response(responses, headers={"MCP-Protocol-Version": PROTOCOL_VERSION})


def _error_response(
    request_id: object,
    message: str,
    status_code: int = 400,
    code: str | int = INVALID_REQUEST,
) -> JSONResponse:
    return JSONResponse(
        error_body(request_id, message, code=code),
        status_code=status_code,
        headers={"MCP-Protocol-Version": PROTOCOL_VERSION},
    )


def _json_response(
    payload: object,
    status_code: int = 200,
    headers: dict[str, str] | None = None,
) -> Response:
    """Serialize *payload* once and return a Response."""
    body = json.dumps(payload, default=json_default, ensure_ascii=False)
    return Response(
        content=body,
        status_code=status_code,
        media_type="application/json",
        headers=headers,
    )
