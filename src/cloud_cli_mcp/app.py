"""Application context assembly."""

from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from cloud_cli_mcp import __version__
from cloud_cli_mcp.audit.logger import AuditLogger
from cloud_cli_mcp.cli.executor import CliExecutor
from cloud_cli_mcp.cli.log_streamer import LogStreamer
from cloud_cli_mcp.config import Settings, load_settings
from cloud_cli_mcp.context.store import ContextStore
from cloud_cli_mcp.mcp_runtime import MCPServer
from cloud_cli_mcp.tools import register_tools
from cloud_cli_mcp.tools.dispatcher import CloudCliDispatcher

SERVER_NAME = "litium-cloud-cli"


@dataclass
class AppContext:
    """Application-wide dependency container.

    One context store and one audit log per process; every transport shares
    them through this object.
    """

    settings: Settings
    context_store: ContextStore
    audit_logger: AuditLogger
    executor: CliExecutor
    log_streamer: LogStreamer
    dispatcher: CloudCliDispatcher
    mcp_server: MCPServer


def build_app_context(
    settings: Settings,
    *,
    executor: CliExecutor | None = None,
) -> AppContext:
    context_store = ContextStore(url_env_var=settings.cli.url_env_var)
    audit_logger = AuditLogger(capacity=settings.audit.capacity)
    if executor is None:
        executor = CliExecutor(
            context_store,
            binary=settings.cli.binary,
            url_env_var=settings.cli.url_env_var,
            default_timeout_seconds=settings.cli.default_timeout_seconds,
            max_output_bytes=settings.cli.max_output_bytes,
            max_concurrency=settings.cli.max_concurrency,
        )
    dispatcher = CloudCliDispatcher(executor, context_store, audit_logger)

    mcp_server = MCPServer(SERVER_NAME, __version__, settings.server.instructions)
    register_tools(mcp_server, dispatcher)

    return AppContext(
        settings=settings,
        context_store=context_store,
        audit_logger=audit_logger,
        executor=executor,
        log_streamer=LogStreamer(executor),
        dispatcher=dispatcher,
        mcp_server=mcp_server,
    )


@lru_cache(maxsize=1)
def get_app_context() -> AppContext:
    """Get or create the process-wide application context."""
    return build_app_context(load_settings())
