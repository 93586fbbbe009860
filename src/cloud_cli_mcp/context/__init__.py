"""Cloud context store."""

from cloud_cli_mcp.context.store import CloudContext, ContextStore

__all__ = ["CloudContext", "ContextStore"]
