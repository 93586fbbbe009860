"""Entrypoint for the Cloud CLI MCP server."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

if __package__ in (None, ""):
    sys.path.insert(0, str(Path(__file__).resolve().parents[1]))  # pragma: no cover

import uvicorn

from cloud_cli_mcp import __version__
from cloud_cli_mcp.app import get_app_context
from cloud_cli_mcp.config import load_settings
from cloud_cli_mcp.logging_utils import configure_logging
from cloud_cli_mcp.mcp_runtime import MCPServer


def build_server() -> MCPServer:
    """Create the MCP server instance with the cloud_cli tool registered."""
    configure_logging()
    settings = load_settings()
    logging.info("Initializing Cloud CLI MCP Server v%s", __version__)
    logging.info("CLI binary: %s", settings.cli.binary)
    if settings.logging.file:
        logging.info("Log file configured at: %s", settings.logging.file)
    return get_app_context().mcp_server


def run_entrypoint() -> None:
    """Run the server based on transport settings."""
    settings = load_settings()
    if settings.server.transport_mode == "http":
        _run_http()
        return
    build_server().run()


def _run_http() -> None:
    build_server()
    from cloud_cli_mcp.transport.http_server import create_http_app

    settings = load_settings()
    uvicorn.run(
        create_http_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":  # pragma: no cover
    run_entrypoint()
