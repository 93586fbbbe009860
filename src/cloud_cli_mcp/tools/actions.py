"""Typed argument models for every ``cloud_cli`` action.

The models form a discriminated union keyed by the literal ``action`` field.
Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Annotated, Literal, Union, get_args

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel

ArtifactType = Literal[
    "litium-db-tool",
    "script-result",
    "db-migration",
    "sqlbackup",
    "storage",
    "dotnet",
    "nextjs",
    "nodejs",
    "nuxtjs",
    "redisbackup",
]
SecretScope = Literal["subscription", "environment"]
ResourceType = Literal["subscription", "environment", "app"]


class ActionArgs(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )

    def to_wire(self) -> dict[str, object]:
        return self.model_dump(by_alias=True, exclude_none=True)


class _Scoped(ActionArgs):
    subscription_id: str | None = None
    environment_id: str | None = None


class SetContextArgs(ActionArgs):
    action: Literal["set_context"]
    subscription_id: str | None = None
    environment_id: str | None = None
    cli_url: str | None = None


class ShowContextArgs(ActionArgs):
    action: Literal["show_context"]


class GetAuditLogsArgs(ActionArgs):
    action: Literal["get_audit_logs"]
    limit: int | None = Field(default=None, ge=1, le=1000)


class ListSubscriptionsArgs(ActionArgs):
    action: Literal["list_subscriptions"]


class SubscriptionShowArgs(ActionArgs):
    action: Literal["subscription_show"]
    subscription_id: str


class ListEnvironmentsArgs(ActionArgs):
    action: Literal["list_environments"]
    subscription_id: str | None = None


class EnvironmentCreateArgs(ActionArgs):
    action: Literal["environment_create"]
    name: str
    location_id: str
    subscription_id: str | None = None
    production: bool | None = None


class AppListArgs(_Scoped):
    action: Literal["app_list"]


class AppShowArgs(_Scoped):
    action: Literal["app_show"]
    app_id: str


class DeployAppArgs(_Scoped):
    action: Literal["deploy_app"]
    app_id: str
    artifact_id: str


class ApplyManifestArgs(_Scoped):
    action: Literal["apply_manifest"]
    file_path: str


class ConsoleOutputArgs(_Scoped):
    action: Literal["console_output"]
    app_id: str


class JobStatusArgs(ActionArgs):
    action: Literal["job_status"]
    job_id: str


class JobLogsSnapshotArgs(ActionArgs):
    action: Literal["job_logs_snapshot"]
    job_id: str
    follow: bool | None = None


class ArtifactListArgs(ActionArgs):
    action: Literal["artifact_list"]
    subscription_id: str | None = None


class ArtifactShowArgs(ActionArgs):
    action: Literal["artifact_show"]
    artifact_id: str


class ArtifactCreateArgs(ActionArgs):
    action: Literal["artifact_create"]
    file_path: str
    artifact_type: ArtifactType
    subscription_id: str | None = None


class ArtifactTypeListArgs(ActionArgs):
    action: Literal["artifact_type_list"]


class MarketplaceListArgs(ActionArgs):
    action: Literal["marketplace_list"]
    filter: str | None = None
    details: bool | None = None


class ManifestGenerateArgs(ActionArgs):
    action: Literal["manifest_generate"]
    app_id: str


class SecretCreateArgs(_Scoped):
    action: Literal["secret_create"]
    secret_id: str
    value: str
    scope: SecretScope


class SecretListArgs(_Scoped):
    action: Literal["secret_list"]
    scope: SecretScope


class AccessControlShowArgs(_Scoped):
    action: Literal["access_control_show"]
    resource_type: ResourceType
    app_id: str | None = None


class AccessControlAddArgs(_Scoped):
    action: Literal["access_control_add"]
    resource_type: ResourceType
    email: str
    role: str
    app_id: str | None = None


class AccessControlRemoveArgs(_Scoped):
    action: Literal["access_control_remove"]
    resource_type: ResourceType
    email: str
    role: str
    app_id: str | None = None


class AccessControlDisableInheritanceArgs(ActionArgs):
    action: Literal["access_control_disable_inheritance"]
    environment_id: str
    resource_type: Literal["environment"] | None = None


class RoleListArgs(ActionArgs):
    action: Literal["role_list"]


class RoleShowArgs(ActionArgs):
    action: Literal["role_show"]
    role_name: str


class ServicePrincipalCreateArgs(ActionArgs):
    action: Literal["service_principal_create"]
    name: str
    file_path: str
    expires: int | None = Field(default=None, ge=1)


class AuthLoginArgs(ActionArgs):
    action: Literal["auth_login"]
    file_path: str | None = None


class AuthLogoutArgs(ActionArgs):
    action: Literal["auth_logout"]


ACTION_MODELS: tuple[type[ActionArgs], ...] = (
    SetContextArgs,
    ShowContextArgs,
    GetAuditLogsArgs,
    ListSubscriptionsArgs,
    SubscriptionShowArgs,
    ListEnvironmentsArgs,
    EnvironmentCreateArgs,
    AppListArgs,
    AppShowArgs,
    DeployAppArgs,
    ApplyManifestArgs,
    ConsoleOutputArgs,
    JobStatusArgs,
    JobLogsSnapshotArgs,
    ArtifactListArgs,
    ArtifactShowArgs,
    ArtifactCreateArgs,
    ArtifactTypeListArgs,
    MarketplaceListArgs,
    ManifestGenerateArgs,
    SecretCreateArgs,
    SecretListArgs,
    AccessControlShowArgs,
    AccessControlAddArgs,
    AccessControlRemoveArgs,
    AccessControlDisableInheritanceArgs,
    RoleListArgs,
    RoleShowArgs,
    ServicePrincipalCreateArgs,
    AuthLoginArgs,
    AuthLogoutArgs,
)


def action_name(model: type[ActionArgs]) -> str:
    return get_args(model.model_fields["action"].annotation)[0]


ACTION_NAMES: tuple[str, ...] = tuple(sorted(action_name(model) for model in ACTION_MODELS))

ActionRequest = Annotated[
    Union[ACTION_MODELS],  # type: ignore[valid-type]
    Field(discriminator="action"),
]

ACTION_ADAPTER: TypeAdapter[ActionRequest] = TypeAdapter(ActionRequest)
