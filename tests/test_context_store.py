from __future__ import annotations

import pytest

from cloud_cli_mcp.context.store import CloudContext, ContextStore


def test_set_context_merges_partial_updates() -> None:
    store = ContextStore()
    store.set_context(subscription_id="sub-1")
    updated = store.set_context(environment_id="env-1")

    assert updated == CloudContext(subscription_id="sub-1", environment_id="env-1")
    assert store.get_context() is updated


def test_set_context_ignores_absent_fields() -> None:
    store = ContextStore()
    store.set_context(subscription_id="sub-1", cli_url="https://cloud.example")
    store.set_context(subscription_id=None)

    assert store.get_context().subscription_id == "sub-1"


def test_get_context_returns_immutable_snapshot() -> None:
    store = ContextStore()
    snapshot = store.get_context()
    store.set_context(subscription_id="sub-1")

    assert snapshot.subscription_id is None
    with pytest.raises(AttributeError):
        snapshot.subscription_id = "other"  # type: ignore[misc]


def test_to_dict_uses_wire_names_and_skips_unset() -> None:
    ctx = CloudContext(subscription_id="sub-1", cli_url="https://cloud.example")
    assert ctx.to_dict() == {"subscriptionId": "sub-1", "cliUrl": "https://cloud.example"}
    assert CloudContext().to_dict() == {}


def test_resolve_prefers_explicit_over_context() -> None:
    store = ContextStore()
    store.set_context(subscription_id="S1", environment_id="E1")

    assert store.resolve_subscription(None) == "S1"
    assert store.resolve_subscription("S2") == "S2"
    assert store.resolve_environment(None) == "E1"
    assert store.resolve_environment("E2") == "E2"


def test_resolve_without_context_is_none() -> None:
    store = ContextStore()
    assert store.resolve_subscription(None) is None
    assert store.resolve_environment("") is None


def test_cli_url_falls_back_to_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("LC_CLI_URL", "https://env.example")
    store = ContextStore()
    assert store.get_cli_url() == "https://env.example"

    store.set_context(cli_url="https://ctx.example")
    assert store.get_cli_url() == "https://ctx.example"


def test_cli_url_none_when_unset(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("LC_CLI_URL", raising=False)
    assert ContextStore().get_cli_url() is None
