import json
import logging
from io import StringIO

import pytest

from cloud_cli_mcp.mcp_runtime import MCPServer, ToolResult, ToolSpec


def _server() -> MCPServer:
    server = MCPServer("litium-cloud-cli", "0.1.0", "inst")

    async def ok(arguments):
        return ToolResult(content=[{"type": "text", "text": "ok"}], structured_content={"n": 1})

    def failing(arguments):
        return ToolResult(
            content=[{"type": "text", "text": "x"}],
            error={"code": "timeout", "message": "CLI command timed out"},
        )

    def broken(arguments):
        raise RuntimeError("boom")

    server.add_tool(ToolSpec("ok", "desc", {"type": "object"}, ok))
    server.add_tool(ToolSpec("failing", "desc", {"type": "object"}, failing))
    server.add_tool(ToolSpec("broken", "desc", {"type": "object"}, broken))
    return server


def _request(method, params=None, request_id=1):
    return {"jsonrpc": "2.0", "id": request_id, "method": method, "params": params or {}}


@pytest.mark.asyncio
async def test_initialize_reports_server_info_and_logging() -> None:
    response = await _server().handle_message(_request("initialize"))

    result = response["result"]
    assert result["protocolVersion"] == "2024-11-05"
    assert result["serverInfo"] == {"name": "litium-cloud-cli", "version": "0.1.0"}
    assert result["capabilities"]["logging"]["levels"] == ["trace", "debug", "info", "warn", "error"]


@pytest.mark.asyncio
async def test_initialize_echoes_supported_protocol_version() -> None:
    response = await _server().handle_message(
        _request("initialize", {"protocolVersion": "2025-06-18"})
    )
    assert response["result"]["protocolVersion"] == "2025-06-18"


@pytest.mark.asyncio
async def test_tools_list() -> None:
    response = await _server().handle_message(_request("tools/list"))
    names = [tool["name"] for tool in response["result"]["tools"]]
    assert names == ["ok", "failing", "broken"]
    assert response["result"]["tools"][0]["inputSchema"] == {"type": "object"}


@pytest.mark.asyncio
async def test_tools_call_success() -> None:
    response = await _server().handle_message(
        _request("tools/call", {"name": "ok", "arguments": {}})
    )
    assert response["result"] == {
        "content": [{"type": "text", "text": "ok"}],
        "structuredContent": {"n": 1},
    }


@pytest.mark.asyncio
async def test_tools_call_failure_is_jsonrpc_error() -> None:
    response = await _server().handle_message(_request("tools/call", {"name": "failing"}))
    assert response["error"] == {
        "code": -32603,
        "message": "CLI command timed out",
        "data": {"code": "timeout", "message": "CLI command timed out"},
    }


@pytest.mark.asyncio
async def test_tools_call_unknown_tool() -> None:
    response = await _server().handle_message(_request("tools/call", {"name": "nope"}))
    assert response["error"]["code"] == -32602


@pytest.mark.asyncio
async def test_tools_call_handler_exception() -> None:
    response = await _server().handle_message(_request("tools/call", {"name": "broken"}))
    assert response["error"] == {"code": -32603, "message": "Internal tool error"}


@pytest.mark.asyncio
async def test_legacy_tool_invoke() -> None:
    server = _server()
    ok = await server.handle_message(_request("tool.invoke", {"toolName": "ok", "args": {}}))
    assert ok["result"] == {"n": 1}

    failing = await server.handle_message(_request("tool.invoke", {"toolName": "failing"}))
    assert failing["error"]["code"] == "timeout"

    missing = await server.handle_message(_request("tool.invoke", {"toolName": "nope"}))
    assert missing["error"]["code"] == "tool_not_found"


@pytest.mark.asyncio
async def test_set_level_applies_to_package_logger() -> None:
    response = await _server().handle_message(_request("logging/setLevel", {"level": "WARN"}))

    assert response["result"] == {"level": "warn"}
    assert logging.getLogger("cloud_cli_mcp").level == logging.WARNING


@pytest.mark.asyncio
async def test_set_level_rejects_unknown_level() -> None:
    response = await _server().handle_message(_request("logging/setLevel", {"level": "verbose"}))

    assert response["error"]["code"] == -32602
    assert response["error"]["data"]["supportedLevels"] == [
        "trace",
        "debug",
        "info",
        "warn",
        "error",
    ]


@pytest.mark.asyncio
async def test_notifications_and_unknown_methods() -> None:
    server = _server()
    assert await server.handle_message({"jsonrpc": "2.0", "method": "notifications/initialized"}) is None
    assert await server.handle_message({"jsonrpc": "2.0", "id": 9, "result": {}}) is None

    response = await server.handle_message(_request("resources/list"))
    assert response["error"] == {"code": -32601, "message": "Method not found"}


def test_stdio_loop_answers_each_line() -> None:
    lines = [
        json.dumps(_request("initialize", request_id=1)),
        "",
        "{not json",
        json.dumps({"jsonrpc": "2.0", "method": "notifications/initialized"}),
        json.dumps(_request("tools/call", {"name": "ok"}, request_id=2)),
    ]
    stdin = StringIO("\n".join(lines) + "\n")
    stdout = StringIO()

    _server().run(stdin=stdin, stdout=stdout)

    responses = [json.loads(line) for line in stdout.getvalue().splitlines()]
    by_id = {response.get("id"): response for response in responses}
    assert by_id[1]["result"]["serverInfo"]["name"] == "litium-cloud-cli"
    assert by_id[2]["result"]["structuredContent"] == {"n": 1}
    assert by_id[None]["error"]["code"] == -32700
    assert len(responses) == 3
