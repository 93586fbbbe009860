"""Validate ``cloud_cli`` calls, translate each action into a CLI invocation,
and audit the outcome.

Every invocation runs through :meth:`CloudCliDispatcher.invoke`:

1. a correlation id is minted before anything else,
2. the raw arguments are validated against the action union,
3. the matching handler resolves context defaults, builds the argument
   vector and runs the CLI,
4. exactly one audit entry is appended, whatever happened.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from pydantic import ValidationError

from cloud_cli_mcp.audit.logger import AuditLogger, new_correlation_id, sanitize_args
from cloud_cli_mcp.audit.models import AuditLogEntry
from cloud_cli_mcp.cli.executor import CliExecutor, ExecResult
from cloud_cli_mcp.context.store import ContextStore
from cloud_cli_mcp.errors import ErrorCode, build_error
from cloud_cli_mcp.tools.actions import (
    ACTION_ADAPTER,
    ACTION_MODELS,
    AccessControlAddArgs,
    AccessControlDisableInheritanceArgs,
    AccessControlRemoveArgs,
    AccessControlShowArgs,
    AppListArgs,
    AppShowArgs,
    ApplyManifestArgs,
    ArtifactCreateArgs,
    ArtifactListArgs,
    ArtifactShowArgs,
    ArtifactTypeListArgs,
    AuthLoginArgs,
    AuthLogoutArgs,
    ConsoleOutputArgs,
    DeployAppArgs,
    EnvironmentCreateArgs,
    GetAuditLogsArgs,
    JobLogsSnapshotArgs,
    JobStatusArgs,
    ListEnvironmentsArgs,
    ListSubscriptionsArgs,
    ManifestGenerateArgs,
    MarketplaceListArgs,
    RoleListArgs,
    RoleShowArgs,
    SecretCreateArgs,
    SecretListArgs,
    ServicePrincipalCreateArgs,
    SetContextArgs,
    ShowContextArgs,
    SubscriptionShowArgs,
    action_name,
)
from cloud_cli_mcp.tools.base import ActionError, ActionResult
from cloud_cli_mcp.utils.time import elapsed_ms, utc_now_iso

logger = logging.getLogger(__name__)

# Timeouts in seconds. Long-running operations get generous ceilings.
DEFAULT_TIMEOUT = 60.0
DEPLOY_TIMEOUT = 120.0
ENVIRONMENT_CREATE_TIMEOUT = 120.0
AUTH_LOGIN_TIMEOUT = 120.0
FOLLOW_LOGS_TIMEOUT = 300.0
APPLY_TIMEOUT = 600.0
ARTIFACT_CREATE_TIMEOUT = 600.0

DEFAULT_AUDIT_LIMIT = 50

Handler = Callable[[Any], Awaitable[ActionResult]]


def split_lines(stdout: str) -> list[str]:
    return [line.strip() for line in stdout.split("\n") if line.strip()]


def json_or_raw(res: ExecResult) -> object:
    return res.json_output if res.json_output is not None else {"rawOutput": res.stdout}


def json_or_lines(res: ExecResult) -> object:
    return res.json_output if res.json_output is not None else split_lines(res.stdout)


def _validation_detail(exc: ValidationError) -> list[dict[str, object]]:
    # Only location, type and message: pydantic's "input" would echo secret values.
    return [
        {
            "path": ".".join(str(part) for part in error["loc"]) or None,
            "type": error["type"],
            "message": error["msg"],
        }
        for error in exc.errors(include_url=False)
    ]


class CloudCliDispatcher:
    def __init__(
        self,
        executor: CliExecutor,
        context: ContextStore,
        audit: AuditLogger,
    ) -> None:
        self._executor = executor
        self._context = context
        self._audit = audit
        self._handlers: dict[str, Handler] = {
            "set_context": self._set_context,
            "show_context": self._show_context,
            "get_audit_logs": self._get_audit_logs,
            "list_subscriptions": self._list_subscriptions,
            "subscription_show": self._subscription_show,
            "list_environments": self._list_environments,
            "environment_create": self._environment_create,
            "app_list": self._app_list,
            "app_show": self._app_show,
            "deploy_app": self._deploy_app,
            "apply_manifest": self._apply_manifest,
            "console_output": self._console_output,
            "job_status": self._job_status,
            "job_logs_snapshot": self._job_logs_snapshot,
            "artifact_list": self._artifact_list,
            "artifact_show": self._artifact_show,
            "artifact_create": self._artifact_create,
            "artifact_type_list": self._artifact_type_list,
            "marketplace_list": self._marketplace_list,
            "manifest_generate": self._manifest_generate,
            "secret_create": self._secret_create,
            "secret_list": self._secret_list,
            "access_control_show": self._access_control_show,
            "access_control_add": self._access_control_add,
            "access_control_remove": self._access_control_remove,
            "access_control_disable_inheritance": self._access_control_disable_inheritance,
            "role_list": self._role_list,
            "role_show": self._role_show,
            "service_principal_create": self._service_principal_create,
            "auth_login": self._auth_login,
            "auth_logout": self._auth_logout,
        }
        declared = {action_name(model) for model in ACTION_MODELS}
        missing = declared - set(self._handlers)
        if missing:
            raise RuntimeError(f"No handler registered for actions: {sorted(missing)}")

    @property
    def actions(self) -> tuple[str, ...]:
        return tuple(sorted(self._handlers))

    async def invoke(self, raw_args: object) -> ActionResult:
        correlation_id = new_correlation_id()
        started = time.monotonic()
        action = "unknown"
        audit_args = sanitize_args(raw_args)
        result: ActionResult | None = None
        try:
            try:
                request = ACTION_ADAPTER.validate_python(raw_args)
            except ValidationError as exc:
                result = ActionResult.failure(
                    build_error(
                        ErrorCode.VALIDATION_ERROR, "Invalid arguments", _validation_detail(exc)
                    )
                )
                return result

            action = request.action
            audit_args = sanitize_args(request.to_wire())
            handler = self._handlers.get(action)
            if handler is None:
                result = ActionResult.failure(
                    build_error(ErrorCode.UNSUPPORTED_ACTION, "Action not implemented")
                )
                return result

            try:
                result = await handler(request)
            except ActionError as exc:
                result = ActionResult.failure(exc.error)
            except (KeyboardInterrupt, SystemExit):
                raise
            except Exception as exc:
                logger.exception("Action %s failed unexpectedly (%s)", action, correlation_id)
                result = ActionResult.failure(
                    build_error(ErrorCode.INTERNAL_ERROR, str(exc) or "Internal error")
                )
            return result
        finally:
            self._record(correlation_id, action, audit_args, started, result)

    def _record(
        self,
        correlation_id: str,
        action: str,
        args: dict[str, object],
        started: float,
        result: ActionResult | None,
    ) -> None:
        if result is None:
            # Only reachable when the invocation itself was cancelled.
            error = build_error(ErrorCode.INTERNAL_ERROR, "Invocation cancelled")
        else:
            error = result.error
        self._audit.log(
            AuditLogEntry(
                timestamp=utc_now_iso(),
                correlation_id=correlation_id,
                action=action,
                args=args,
                duration_ms=elapsed_ms(started),
                success=error is None,
                error_code=error.code if error else None,
                error_message=error.message if error else None,
                error_detail=error.detail if error else None,
            )
        )

    # -- shared steps ------------------------------------------------------

    def _subscription(self, explicit: str | None) -> str:
        subscription = self._context.resolve_subscription(explicit)
        if not subscription:
            raise ActionError.of(
                ErrorCode.MISSING_SUBSCRIPTION,
                "Subscription id not provided or set in context",
            )
        return subscription

    def _environment(self, explicit: str | None) -> str:
        environment = self._context.resolve_environment(explicit)
        if not environment:
            raise ActionError.of(
                ErrorCode.MISSING_ENVIRONMENT,
                "Environment id not provided or set in context",
            )
        return environment

    async def _run(
        self,
        args: Sequence[str],
        *,
        timeout: float = DEFAULT_TIMEOUT,
        parse_json: bool = True,
        failure_message: str = "Failed",
    ) -> ExecResult:
        res = await self._executor.execute(args, timeout=timeout, parse_json=parse_json)
        if not res.ok:
            raise ActionError.of(
                ErrorCode(res.error_code or ErrorCode.COMMAND_FAILED.value),
                res.error_message or failure_message,
                {"stderr": res.stderr},
            )
        return res

    async def establish_cli_context(self, subscription: str, environment: str) -> None:
        """Point the CLI's own persisted context at a subscription/environment.

        Some CLI commands only read the CLI-side context, so this must succeed
        before they run.
        """
        await self._run(
            ["context", "set", "--subscription", subscription, "--environment", environment],
            parse_json=False,
            failure_message="Failed to set CLI context",
        )

    # -- in-process actions -----------------------------------------------

    async def _set_context(self, args: SetContextArgs) -> ActionResult:
        updated = self._context.set_context(
            subscription_id=args.subscription_id,
            environment_id=args.environment_id,
            cli_url=args.cli_url,
        )
        return ActionResult.success(context=updated.to_dict())

    async def _show_context(self, args: ShowContextArgs) -> ActionResult:
        return ActionResult.success(context=self._context.get_context().to_dict())

    async def _get_audit_logs(self, args: GetAuditLogsArgs) -> ActionResult:
        entries = self._audit.get_recent(args.limit or DEFAULT_AUDIT_LIMIT)
        return ActionResult.success(logs=[entry.to_dict() for entry in entries])

    # -- subscriptions and environments -----------------------------------

    async def _list_subscriptions(self, args: ListSubscriptionsArgs) -> ActionResult:
        res = await self._run(["subscription", "list", "-o", "json"])
        return ActionResult.success(subscriptions=json_or_lines(res))

    async def _subscription_show(self, args: SubscriptionShowArgs) -> ActionResult:
        res = await self._run(
            ["subscription", "show", "--subscription", args.subscription_id, "-o", "json"]
        )
        return ActionResult.success(subscription=json_or_raw(res))

    async def _list_environments(self, args: ListEnvironmentsArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        res = await self._run(["environment", "list", "--subscription", subscription, "-o", "json"])
        return ActionResult.success(environments=json_or_lines(res))

    async def _environment_create(self, args: EnvironmentCreateArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [
            "environment", "create",
            "--subscription", subscription,
            "--name", args.name,
            "--location", args.location_id,
        ]
        if args.production:
            cli_args.append("--production")
        cli_args += ["-o", "json"]
        res = await self._run(
            cli_args,
            timeout=ENVIRONMENT_CREATE_TIMEOUT,
            failure_message="Environment creation failed",
        )
        return ActionResult.success(environment=json_or_raw(res))

    # -- apps and deployments ---------------------------------------------

    async def _app_list(self, args: AppListArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        environment = self._environment(args.environment_id)
        res = await self._run(
            [
                "app", "list",
                "--subscription", subscription,
                "--environment", environment,
                "-o", "json",
            ],
            parse_json=False,
        )
        return ActionResult.success(apps=split_lines(res.stdout))

    async def _app_show(self, args: AppShowArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        environment = self._environment(args.environment_id)
        res = await self._run(
            [
                "app", "show",
                "--app", args.app_id,
                "--subscription", subscription,
                "--environment", environment,
                "-o", "json",
            ]
        )
        return ActionResult.success(app=json_or_raw(res))

    async def _deploy_app(self, args: DeployAppArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        environment = self._environment(args.environment_id)
        res = await self._run(
            [
                "app", "deploy",
                "--app", args.app_id,
                "--artifact", args.artifact_id,
                "--subscription", subscription,
                "--environment", environment,
                "-o", "json",
            ],
            timeout=DEPLOY_TIMEOUT,
            failure_message="Deploy failed",
        )
        return ActionResult.success(deployment=json_or_raw(res))

    async def _apply_manifest(self, args: ApplyManifestArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        environment = self._environment(args.environment_id)
        res = await self._run(
            [
                "apply",
                "--file", args.file_path,
                "--subscription", subscription,
                "--environment", environment,
                "-o", "json",
            ],
            timeout=APPLY_TIMEOUT,
            failure_message="Apply failed",
        )
        return ActionResult.success(result=json_or_raw(res))

    async def _console_output(self, args: ConsoleOutputArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        environment = self._environment(args.environment_id)
        await self.establish_cli_context(subscription, environment)
        res = await self._run(
            ["app", "action", "--action", "console-output", "--app", args.app_id, "-o", "json"]
        )
        return ActionResult.success(result=json_or_raw(res))

    # -- jobs --------------------------------------------------------------

    async def _job_status(self, args: JobStatusArgs) -> ActionResult:
        res = await self._run(["status", "show", "--job", args.job_id, "-o", "json"])
        return ActionResult.success(job=json_or_raw(res))

    async def _job_logs_snapshot(self, args: JobLogsSnapshotArgs) -> ActionResult:
        cli_args = ["status", "logs", "--job", args.job_id]
        if args.follow:
            cli_args.append("--follow")
        res = await self._run(
            cli_args,
            parse_json=False,
            timeout=FOLLOW_LOGS_TIMEOUT if args.follow else DEFAULT_TIMEOUT,
        )
        return ActionResult.success(logs=split_lines(res.stdout))

    # -- artifacts and marketplace ----------------------------------------

    async def _artifact_list(self, args: ArtifactListArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        res = await self._run(
            ["artifact", "list", "--subscription", subscription, "-o", "json"],
            parse_json=False,
        )
        return ActionResult.success(artifacts=split_lines(res.stdout))

    async def _artifact_show(self, args: ArtifactShowArgs) -> ActionResult:
        res = await self._run(["artifact", "show", "--artifact", args.artifact_id, "-o", "json"])
        return ActionResult.success(artifact=json_or_raw(res))

    async def _artifact_create(self, args: ArtifactCreateArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        res = await self._run(
            [
                "artifact", "create",
                "--subscription", subscription,
                "--artifact-type", args.artifact_type,
                "--file-path", args.file_path,
                "--no-progress",
                "-o", "json",
            ],
            timeout=ARTIFACT_CREATE_TIMEOUT,
            failure_message="Artifact creation failed",
        )
        return ActionResult.success(artifact=json_or_raw(res))

    async def _artifact_type_list(self, args: ArtifactTypeListArgs) -> ActionResult:
        res = await self._run(["artifact", "type", "list", "-o", "json"])
        return ActionResult.success(artifactTypes=json_or_lines(res))

    async def _marketplace_list(self, args: MarketplaceListArgs) -> ActionResult:
        cli_args = ["marketplace", "list"]
        if args.filter:
            cli_args += ["--filter", args.filter]
        if args.details:
            cli_args.append("--details")
        cli_args += ["-o", "json"]
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(apps=split_lines(res.stdout))

    async def _manifest_generate(self, args: ManifestGenerateArgs) -> ActionResult:
        res = await self._run(["marketplace", "manifest", "--app", args.app_id], parse_json=False)
        return ActionResult.success(manifest=res.stdout)

    # -- secrets -----------------------------------------------------------

    async def _secret_create(self, args: SecretCreateArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [
            args.scope, "secret", "create",
            "--secret", args.secret_id,
            "--text-value", args.value,
            "--subscription", subscription,
        ]
        if args.scope == "environment":
            cli_args += ["--environment", self._scoped_environment(args.environment_id)]
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(message="Secret created", output=res.stdout)

    async def _secret_list(self, args: SecretListArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [args.scope, "secret", "list", "--subscription", subscription]
        if args.scope == "environment":
            cli_args += ["--environment", self._scoped_environment(args.environment_id)]
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(secrets=split_lines(res.stdout))

    def _scoped_environment(self, explicit: str | None) -> str:
        environment = self._context.resolve_environment(explicit)
        if not environment:
            raise ActionError.of(
                ErrorCode.MISSING_ENVIRONMENT,
                "Environment id required for environment scope",
            )
        return environment

    # -- access control ----------------------------------------------------

    def _resource_target(
        self, args: AccessControlShowArgs | AccessControlAddArgs | AccessControlRemoveArgs
    ) -> list[str]:
        if args.resource_type == "environment":
            return ["--environment", self._environment(args.environment_id)]
        if args.resource_type == "app" and args.app_id:
            return ["--app", args.app_id]
        return []

    async def _access_control_show(self, args: AccessControlShowArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [args.resource_type, "access-control", "show", "--subscription", subscription]
        cli_args += self._resource_target(args)
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(accessControl=split_lines(res.stdout))

    async def _access_control_add(self, args: AccessControlAddArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [
            args.resource_type, "access-control", "add",
            "--email", args.email,
            "--role", args.role,
            "--subscription", subscription,
        ]
        cli_args += self._resource_target(args)
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(message="Access granted", output=res.stdout)

    async def _access_control_remove(self, args: AccessControlRemoveArgs) -> ActionResult:
        subscription = self._subscription(args.subscription_id)
        cli_args = [
            args.resource_type, "access-control", "remove",
            "--email", args.email,
            "--role", args.role,
            "--subscription", subscription,
        ]
        cli_args += self._resource_target(args)
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(message="Access removed", output=res.stdout)

    async def _access_control_disable_inheritance(
        self, args: AccessControlDisableInheritanceArgs
    ) -> ActionResult:
        res = await self._run(
            [
                "environment", "access-control", "disable-inheritance",
                "--environment", args.environment_id,
            ],
            parse_json=False,
        )
        return ActionResult.success(message="Inheritance disabled", output=res.stdout)

    # -- roles, principals and auth ---------------------------------------

    async def _role_list(self, args: RoleListArgs) -> ActionResult:
        res = await self._run(["role", "list", "-o", "json"], parse_json=False)
        return ActionResult.success(roles=split_lines(res.stdout))

    async def _role_show(self, args: RoleShowArgs) -> ActionResult:
        res = await self._run(["role", "show", "--role", args.role_name, "-o", "json"], parse_json=False)
        return ActionResult.success(role=split_lines(res.stdout))

    async def _service_principal_create(self, args: ServicePrincipalCreateArgs) -> ActionResult:
        cli_args = ["service-principal", "create", "--name", args.name, "--file", args.file_path]
        if args.expires:
            cli_args += ["--expires", str(args.expires)]
        res = await self._run(cli_args, parse_json=False)
        return ActionResult.success(message="Service principal created", output=res.stdout)

    async def _auth_login(self, args: AuthLoginArgs) -> ActionResult:
        cli_args = ["auth", "login"]
        if args.file_path:
            cli_args += ["--service-principal", "--file", args.file_path]
        res = await self._run(
            cli_args, parse_json=False, timeout=AUTH_LOGIN_TIMEOUT, failure_message="Login failed"
        )
        return ActionResult.success(message="Logged in", output=res.stdout)

    async def _auth_logout(self, args: AuthLogoutArgs) -> ActionResult:
        res = await self._run(["auth", "logout"], parse_json=False)
        return ActionResult.success(message="Logged out", output=res.stdout)
