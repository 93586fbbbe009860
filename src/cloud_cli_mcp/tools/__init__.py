"""Tool registration helpers.

The bridge exposes a single tool, ``cloud_cli``, whose ``action`` argument
selects one of the supported CLI operations.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from cloud_cli_mcp.logging_utils import get_logger
from cloud_cli_mcp.mcp_runtime import MCPServer, ToolSpec
from cloud_cli_mcp.tools._schemas import make_cloud_cli_tool

if TYPE_CHECKING:
    from cloud_cli_mcp.tools.dispatcher import CloudCliDispatcher

__all__ = ["get_tool_registry", "get_tool_specs", "register_tools"]


def get_tool_specs(dispatcher: CloudCliDispatcher) -> list[ToolSpec]:
    return [make_cloud_cli_tool(dispatcher)]


def get_tool_registry(dispatcher: CloudCliDispatcher) -> dict[str, ToolSpec]:
    return {tool.name: tool for tool in get_tool_specs(dispatcher)}


def register_tools(server: MCPServer, dispatcher: CloudCliDispatcher) -> None:
    logger = get_logger(__name__)
    for tool in get_tool_specs(dispatcher):
        server.add_tool(tool)
    logger.info(
        "Registered tool cloud_cli with %d actions", len(dispatcher.actions)
    )
