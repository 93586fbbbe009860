from __future__ import annotations

import asyncio
import contextlib
import logging
from unittest.mock import AsyncMock, MagicMock

import pytest
from helpers import ok_result

from cloud_cli_mcp import logging_utils
from cloud_cli_mcp.audit.logger import AuditLogger
from cloud_cli_mcp.context.store import ContextStore
from cloud_cli_mcp.tools.dispatcher import CloudCliDispatcher


@pytest.fixture(autouse=True)
def _keep_test_log_handlers(monkeypatch: pytest.MonkeyPatch) -> None:
    # configure_logging() uses basicConfig(force=True), which would drop caplog's handler.
    monkeypatch.setattr(logging_utils, "_logging_configured", True)
    package_logger = logging.getLogger(logging_utils.PACKAGE_LOGGER)
    level = package_logger.level
    yield
    package_logger.setLevel(level)


@pytest.fixture(autouse=True)
def _close_default_event_loop() -> None:
    yield
    policy = asyncio.get_event_loop_policy()
    local = getattr(policy, "_local", None)
    loop = getattr(local, "_loop", None) if local is not None else None
    if loop is not None and not loop.is_running() and not loop.is_closed():
        with contextlib.suppress(Exception):
            loop.close()
    if loop is not None:
        with contextlib.suppress(Exception):
            policy.set_event_loop(None)


@pytest.fixture
def context_store() -> ContextStore:
    return ContextStore()


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger(capacity=1000)


@pytest.fixture
def executor() -> MagicMock:
    mock = MagicMock()
    mock.execute = AsyncMock(return_value=ok_result())
    return mock


@pytest.fixture
def dispatcher(
    executor: MagicMock, context_store: ContextStore, audit_logger: AuditLogger
) -> CloudCliDispatcher:
    return CloudCliDispatcher(executor, context_store, audit_logger)
