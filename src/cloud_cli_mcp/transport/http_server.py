"""Starlette HTTP server assembly: MCP endpoint, health probes and log WebSocket."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route, WebSocketRoute
from starlette.websockets import WebSocket, WebSocketState

from cloud_cli_mcp.app import AppContext, get_app_context
from cloud_cli_mcp.errors import AUTH_REQUIRED_MESSAGE, ErrorCode
from cloud_cli_mcp.transport.mcp_handler import handle_mcp_request

logger = logging.getLogger(__name__)

HEALTH_CHECK_ARGS = ("subscription", "list", "-o", "json")


class WebSocketSink:
    """Forwards log stream messages to one WebSocket client as JSON text frames."""

    def __init__(self, websocket: WebSocket) -> None:
        self._websocket = websocket

    async def send(self, message: dict[str, object]) -> None:
        await self._websocket.send_json(message)

    async def close(self) -> None:
        if self._websocket.application_state != WebSocketState.DISCONNECTED:
            await self._websocket.close()


def create_http_app(ctx: AppContext | None = None) -> Starlette:
    """Create the HTTP MCP server application."""
    app_context = ctx or get_app_context()

    async def mcp_handler(request: Request) -> Response:
        return await handle_mcp_request(request)

    async def health_handler(request: Request) -> Response:
        res = await app_context.executor.execute(
            HEALTH_CHECK_ARGS,
            timeout=app_context.settings.cli.health_timeout_seconds,
        )
        if res.ok:
            return JSONResponse({"ok": True, "cli": "available", "auth": "ok"})
        if res.error_code == ErrorCode.AUTH_REQUIRED.value:
            return JSONResponse(
                {
                    "ok": False,
                    "error": {"code": res.error_code, "message": AUTH_REQUIRED_MESSAGE},
                },
                status_code=401,
            )
        logger.warning("Health check failed: %s", res.error_message)
        return JSONResponse(
            {
                "ok": False,
                "error": {
                    "code": res.error_code or ErrorCode.COMMAND_FAILED.value,
                    "message": res.error_message,
                },
            },
            status_code=500,
        )

    async def ready_handler(request: Request) -> Response:
        return JSONResponse({"status": "ready"})

    async def logs_websocket(websocket: WebSocket) -> None:
        await websocket.accept()
        job_id = websocket.query_params.get("jobId")
        if not job_id:
            await websocket.send_json(
                {"error": True, "text": "Missing jobId parameter", "done": True}
            )
            await websocket.close()
            return

        logger.info("Streaming logs for job %s", job_id)
        stream = app_context.log_streamer.stream_logs(job_id, WebSocketSink(websocket))
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
        finally:
            stream.cancel()
            await stream.wait()
            logger.info("Log stream for job %s closed", job_id)

    routes = [
        Route("/mcp", endpoint=mcp_handler, methods=["POST", "OPTIONS"]),
        Route("/health", endpoint=health_handler, methods=["GET"]),
        Route("/ready", endpoint=ready_handler, methods=["GET"]),
        WebSocketRoute("/ws/logs", endpoint=logs_websocket),
    ]

    @asynccontextmanager
    async def lifespan(app: Starlette):
        settings = app_context.settings
        logger.info(
            "HTTP server listening on http://%s:%s (logs on /ws/logs)",
            settings.server.host,
            settings.server.port,
        )
        try:
            yield
        finally:
            logger.info("Stopping HTTP server...")

    app = Starlette(routes=routes, lifespan=lifespan)
    app.state.app_context = app_context
    return app
