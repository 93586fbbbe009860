"""Configuration management for the Cloud CLI MCP server."""

from __future__ import annotations

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError, field_validator

_config_logger = logging.getLogger(__name__)


class LoggingSettings(BaseModel):
    level: str = Field(default="INFO", description="Python logging level name")
    file: str | None = Field(default=None, description="Optional log file path")


class CLISettings(BaseModel):
    binary: str = Field(default="litium-cloud", min_length=1)
    url_env_var: str = Field(
        default="LC_CLI_URL",
        description="Environment variable the CLI reads its endpoint URL from.",
    )
    default_timeout_seconds: float = Field(default=60.0, gt=0, le=3600)
    max_output_bytes: int = Field(default=10 * 1024 * 1024, ge=1024)
    max_concurrency: int = Field(
        default=0,
        ge=0,
        description="Upper bound on concurrently running CLI processes (0 = unbounded).",
    )
    health_timeout_seconds: float = Field(default=10.0, gt=0, le=300)


class AuditSettings(BaseModel):
    capacity: int = Field(default=1000, ge=1, le=100_000)


class ServerSettings(BaseModel):
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=7070, ge=1024, le=65535)
    instructions: str = Field(
        default=(
            "Use the cloud_cli tool to manage Litium Cloud subscriptions, environments, "
            "apps, artifacts and deployments. Call set_context once to avoid repeating "
            "subscriptionId and environmentId on every action."
        )
    )
    transport_mode: Literal["stdio", "http"] = Field(default="stdio")

    @field_validator("transport_mode", mode="before")
    @classmethod
    def _normalize_transport_mode(cls, value: object) -> object:
        if isinstance(value, str):
            return value.strip().lower()
        return value


class Settings(BaseModel):
    server: ServerSettings = Field(default_factory=ServerSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cli: CLISettings = Field(default_factory=CLISettings)
    audit: AuditSettings = Field(default_factory=AuditSettings)


ENV_KEYS = {
    "host": "MCP_HOST",
    "port": "MCP_PORT",
    "instructions": "MCP_INSTRUCTIONS",
    "transport_mode": "TRANSPORT_MODE",
    "log_level": "LOG_LEVEL",
    "log_file": "LOG_FILE",
    "cli_binary": "LITIUM_CLOUD_BIN",
    "cli_timeout": "CLI_TIMEOUT_SECONDS",
    "cli_max_output": "CLI_MAX_OUTPUT_BYTES",
    "cli_max_concurrency": "CLI_MAX_CONCURRENCY",
    "cli_health_timeout": "CLI_HEALTH_TIMEOUT_SECONDS",
    "audit_capacity": "AUDIT_CAPACITY",
}


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_path(path: str) -> str:
    candidate = Path(path)
    if candidate.is_absolute():
        return str(candidate.resolve())
    return str((_project_root() / candidate).resolve())


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return int(value)
    except ValueError:
        _config_logger.warning(
            "Invalid integer value for %s: %r, using default %d", key, value, default
        )
        return default


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        _config_logger.warning(
            "Invalid float value for %s: %r, using default %s", key, value, default
        )
        return default


def load_settings() -> Settings:
    """Load configuration and cache the result."""

    return _load_settings_cached()


@lru_cache(maxsize=1)
def _load_settings_cached() -> Settings:
    load_dotenv(dotenv_path=_project_root() / ".env")
    log_file_env = os.getenv(ENV_KEYS["log_file"])
    # PORT and MCP_LOG_LEVEL are honoured for compatibility with hosted deployments.
    port_default = _env_int("PORT", ServerSettings().port)
    level_default = os.getenv("MCP_LOG_LEVEL", LoggingSettings().level)

    settings_data: dict[str, object] = {
        "server": {
            "host": os.getenv(ENV_KEYS["host"], ServerSettings().host),
            "port": _env_int(ENV_KEYS["port"], port_default),
            "instructions": os.getenv(ENV_KEYS["instructions"], ServerSettings().instructions),
            "transport_mode": os.getenv(
                ENV_KEYS["transport_mode"], ServerSettings().transport_mode
            ),
        },
        "logging": {
            "level": os.getenv(ENV_KEYS["log_level"], level_default),
            "file": _resolve_path(log_file_env) if log_file_env else None,
        },
        "cli": {
            "binary": os.getenv(ENV_KEYS["cli_binary"], CLISettings().binary),
            "default_timeout_seconds": _env_float(
                ENV_KEYS["cli_timeout"], CLISettings().default_timeout_seconds
            ),
            "max_output_bytes": _env_int(
                ENV_KEYS["cli_max_output"], CLISettings().max_output_bytes
            ),
            "max_concurrency": _env_int(
                ENV_KEYS["cli_max_concurrency"], CLISettings().max_concurrency
            ),
            "health_timeout_seconds": _env_float(
                ENV_KEYS["cli_health_timeout"], CLISettings().health_timeout_seconds
            ),
        },
        "audit": {
            "capacity": _env_int(ENV_KEYS["audit_capacity"], AuditSettings().capacity),
        },
    }

    try:
        settings = Settings.model_validate(settings_data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    return settings
