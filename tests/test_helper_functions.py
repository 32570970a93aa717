"""Tests for `livepix_proxy.helper_functions`."""

from __future__ import annotations

import types

import pytest

from livepix_proxy import helper_functions


class _StubSecretManagerClient:  # noqa: D101
    secrets = {
        "livepix-client-id": b"sm-id",
        "livepix-client-secret": b"sm-secret",
    }

    def __init__(self):
        self.request_args: list[dict] = []

    def access_secret_version(self, request):  # noqa: D401
        self.request_args.append(request)
        secret_id = request["name"].split("/")[3]
        return types.SimpleNamespace(payload=types.SimpleNamespace(data=self.secrets[secret_id]))


@pytest.fixture
def secret_manager(monkeypatch: pytest.MonkeyPatch):
    created: list[_StubSecretManagerClient] = []

    def _factory():
        client = _StubSecretManagerClient()
        created.append(client)
        return client

    monkeypatch.setattr(helper_functions.secretmanager, "SecretManagerServiceClient", _factory)
    return created


# ---------------------------- get_secret_value -----------------------------


def test_get_secret_value_returns_payload(secret_manager):
    assert helper_functions.get_secret_value("proj", "livepix-client-id") == "sm-id"
    assert secret_manager[0].request_args == [
        {"name": "projects/proj/secrets/livepix-client-id/versions/latest"}
    ]


def test_get_secret_value_never_logs_payload(secret_manager, gcp_logger):
    helper_functions.get_secret_value("proj", "livepix-client-secret")
    assert all("sm-secret" not in text for text, _ in gcp_logger.records)


# --------------------------- parse_bearer_token ----------------------------


@pytest.mark.parametrize(
    "header, expected",
    [
        ("Bearer abc.def", "abc.def"),
        ("Bearer   padded ", "padded"),
        ("Bearer ", None),
        ("Basic dXNlcg==", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_bearer_token(header, expected):
    assert helper_functions.parse_bearer_token(header) == expected


# ------------------------ resolve_client_credentials -----------------------


def test_resolve_credentials_prefers_environment(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LIVEPIX_CLIENT_ID", "env-id")
    monkeypatch.setenv("LIVEPIX_CLIENT_SECRET", "env-secret")

    result = helper_functions.resolve_client_credentials({"clientId": "b", "clientSecret": "c"})

    assert result == ("env-id", "env-secret")


def test_resolve_credentials_incomplete_env_uses_body(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LIVEPIX_CLIENT_ID", "env-id")

    result = helper_functions.resolve_client_credentials({"clientId": "b", "clientSecret": "c"})

    assert result == ("b", "c")


def test_resolve_credentials_from_secret_manager(monkeypatch: pytest.MonkeyPatch, secret_manager):
    monkeypatch.setenv("LIVEPIX_SECRET_PROJECT", "proj")

    assert helper_functions.resolve_client_credentials() == ("sm-id", "sm-secret")


def test_resolve_credentials_missing(gcp_logger):
    assert helper_functions.resolve_client_credentials({"clientId": "only-id"}) == (None, None)
    assert gcp_logger.records[-1][1] == "WARNING"


def test_resolve_credentials_from_settings_mapping(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("LIVEPIX_CLIENT_ID", "env-id")
    monkeypatch.setenv("LIVEPIX_CLIENT_SECRET", "env-secret")
    settings = {"LIVEPIX_CLIENT_ID": "cfg-id", "LIVEPIX_CLIENT_SECRET": "cfg-secret"}

    assert helper_functions.resolve_client_credentials(None, settings) == ("cfg-id", "cfg-secret")


def test_resolve_credentials_secret_project_from_settings(secret_manager):
    assert helper_functions.resolve_client_credentials({}, {"LIVEPIX_SECRET_PROJECT": "proj"}) == (
        "sm-id",
        "sm-secret",
    )


@pytest.mark.parametrize("payload", [["clientId", "clientSecret"], "clientId=a", 3])
def test_resolve_credentials_ignores_non_object_body(payload):
    assert helper_functions.resolve_client_credentials(payload, {}) == (None, None)


def test_resolve_credentials_propagates_secret_manager_failure(monkeypatch: pytest.MonkeyPatch):
    def _broken():
        raise RuntimeError("no ADC")

    monkeypatch.setattr(helper_functions.secretmanager, "SecretManagerServiceClient", _broken)

    with pytest.raises(RuntimeError):
        helper_functions.resolve_client_credentials({}, {"LIVEPIX_SECRET_PROJECT": "proj"})
