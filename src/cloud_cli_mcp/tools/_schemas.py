"""JSON Schema and ToolSpec for the ``cloud_cli`` tool.

The published schema is deliberately flat: one object with an ``action`` enum
and every field any action accepts. Per-action requirements are enforced by
the pydantic models in :mod:`cloud_cli_mcp.tools.actions`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, get_args

from cloud_cli_mcp.mcp_runtime import ToolResult, ToolSpec
from cloud_cli_mcp.tools.actions import ACTION_NAMES, ArtifactType, ResourceType, SecretScope
from cloud_cli_mcp.tools.base import result_from_action

if TYPE_CHECKING:
    from cloud_cli_mcp.tools.dispatcher import CloudCliDispatcher

TOOL_NAME = "cloud_cli"
TOOL_DESCRIPTION = "Execute Litium Cloud CLI operations"

_WAIT_HINT = (
    "Deployments and artifact processing take time. Wait 60-120 seconds before "
    "checking status with job_status or artifact_show."
)

CLOUD_CLI_SCHEMA: dict[str, object] = {
    "type": "object",
    "properties": {
        "action": {
            "type": "string",
            "enum": list(ACTION_NAMES),
            "description": "The action to perform",
        },
        "subscriptionId": {
            "type": "string",
            "description": (
                "Subscription ID (required for subscription_show; other actions fall back "
                "to the subscription set with set_context)"
            ),
        },
        "environmentId": {
            "type": "string",
            "description": (
                "Environment ID (required for access_control_disable_inheritance; "
                "other actions fall back to the environment set with set_context)"
            ),
        },
        "cliUrl": {
            "type": "string",
            "description": "CLI URL to use (set_context only).",
        },
        "name": {
            "type": "string",
            "description": "Name (required for environment_create, service_principal_create)",
        },
        "locationId": {
            "type": "string",
            "description": "Location ID (required for environment_create)",
        },
        "production": {
            "type": "boolean",
            "description": "Mark environment as production (optional for environment_create)",
        },
        "appId": {
            "type": "string",
            "description": (
                "App ID (required for app_show, deploy_app, console_output, manifest_generate)"
            ),
        },
        "artifactId": {
            "type": "string",
            "description": "Artifact ID (required for deploy_app, artifact_show). " + _WAIT_HINT,
        },
        "jobId": {
            "type": "string",
            "description": "Job ID (required for job_status, job_logs_snapshot). " + _WAIT_HINT,
        },
        "filePath": {
            "type": "string",
            "description": (
                "File path (required for artifact_create, service_principal_create, "
                "apply_manifest; optional for auth_login)"
            ),
        },
        "artifactType": {
            "type": "string",
            "enum": list(get_args(ArtifactType)),
            "description": "Artifact type (required for artifact_create). " + _WAIT_HINT,
        },
        "filter": {
            "type": "string",
            "description": "Filter string (optional for marketplace_list)",
        },
        "details": {
            "type": "boolean",
            "description": "Show details (optional for marketplace_list)",
        },
        "scope": {
            "type": "string",
            "enum": list(get_args(SecretScope)),
            "description": "Scope (required for secret_create, secret_list)",
        },
        "secretId": {
            "type": "string",
            "description": "Secret ID (required for secret_create)",
        },
        "value": {
            "type": "string",
            "description": "Secret value (required for secret_create). Never logged.",
        },
        "resourceType": {
            "type": "string",
            "enum": list(get_args(ResourceType)),
            "description": "Resource type (required for access_control_show/add/remove)",
        },
        "email": {
            "type": "string",
            "description": "Email address (required for access_control_add, access_control_remove)",
        },
        "role": {
            "type": "string",
            "description": "Role name (required for access_control_add, access_control_remove)",
        },
        "roleName": {
            "type": "string",
            "description": "Role name (required for role_show)",
        },
        "expires": {
            "type": "integer",
            "minimum": 1,
            "description": "Expiration in seconds (optional for service_principal_create)",
        },
        "follow": {
            "type": "boolean",
            "description": "Follow logs until the job ends (optional for job_logs_snapshot)",
        },
        "limit": {
            "type": "integer",
            "minimum": 1,
            "maximum": 1000,
            "default": 50,
            "description": "Number of most recent entries to return (optional for get_audit_logs)",
        },
    },
    "required": ["action"],
    "additionalProperties": True,
}


def make_cloud_cli_tool(dispatcher: CloudCliDispatcher) -> ToolSpec:
    async def _handler(arguments: dict[str, object]) -> ToolResult:
        return result_from_action(await dispatcher.invoke(arguments))

    return ToolSpec(
        name=TOOL_NAME,
        description=TOOL_DESCRIPTION,
        input_schema=CLOUD_CLI_SCHEMA,
        handler=_handler,
    )
