"""Child-process layer around the cloud CLI."""

from cloud_cli_mcp.cli.executor import CliExecutor, ExecResult
from cloud_cli_mcp.cli.log_streamer import LineBuffer, LogSink, LogStream, LogStreamer

__all__ = [
    "CliExecutor",
    "ExecResult",
    "LineBuffer",
    "LogSink",
    "LogStream",
    "LogStreamer",
]
