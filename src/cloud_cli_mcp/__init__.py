"""MCP adapter server for the Litium Cloud CLI."""

__version__ = "0.1.0"
