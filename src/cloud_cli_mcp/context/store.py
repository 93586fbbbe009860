"""Process-wide default subscription/environment/endpoint."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, replace


@dataclass(frozen=True)
class CloudContext:
    subscription_id: str | None = None
    environment_id: str | None = None
    cli_url: str | None = None

    def to_dict(self) -> dict[str, str]:
        keys = {
            "subscription_id": "subscriptionId",
            "environment_id": "environmentId",
            "cli_url": "cliUrl",
        }
        return {keys[k]: v for k, v in asdict(self).items() if v is not None}


class ContextStore:
    """Last-provided-value cache used to default omitted action parameters.

    Snapshots are immutable, so a merge either fully replaces the current
    snapshot or does not happen at all.
    """

    def __init__(self, url_env_var: str = "LC_CLI_URL") -> None:
        self._url_env_var = url_env_var
        self._ctx = CloudContext()

    def set_context(
        self,
        *,
        subscription_id: str | None = None,
        environment_id: str | None = None,
        cli_url: str | None = None,
    ) -> CloudContext:
        changes = {
            key: value
            for key, value in (
                ("subscription_id", subscription_id),
                ("environment_id", environment_id),
                ("cli_url", cli_url),
            )
            if value is not None
        }
        self._ctx = replace(self._ctx, **changes)
        return self._ctx

    def get_context(self) -> CloudContext:
        return self._ctx

    def get_cli_url(self) -> str | None:
        return self._ctx.cli_url or os.environ.get(self._url_env_var) or None

    def resolve_subscription(self, explicit: str | None) -> str | None:
        return explicit or self._ctx.subscription_id

    def resolve_environment(self, explicit: str | None) -> str | None:
        return explicit or self._ctx.environment_id
