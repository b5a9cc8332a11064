"""Unit tests for scoped credential resolution."""

import pytest

from libs.models import (
    CredentialError,
    CredentialNotFoundError,
    CredentialScopeError,
    StageName,
)
from services.dagster.deploy_pipelines.resources import EnvCredentialResource
from services.dagster.deploy_pipelines.resources.credentials_resource import (
    credential_env_key,
)

PREFIX = "DEPLOY_CRED_DEPLOY_SERVER_KEY_"


def test_env_key_normalizes_identifier():
    assert (
        credential_env_key("DEPLOY_CRED_", "deploy-server.key", "PASSWORD")
        == "DEPLOY_CRED_DEPLOY_SERVER_KEY_PASSWORD"
    )


def test_resolves_key_file_from_environment(monkeypatch):
    monkeypatch.setenv(f"{PREFIX}KEY_FILE", "/keys/id_ed25519")
    monkeypatch.setenv(f"{PREFIX}PASSPHRASE", "pass")

    credential = EnvCredentialResource().resolve("deploy-server-key", StageName.TRANSFER)

    assert credential.private_key_path == "/keys/id_ed25519"
    assert credential.passphrase.get_secret_value() == "pass"
    assert credential.allows(StageName.LAUNCH)


def test_bindings_take_precedence(monkeypatch):
    monkeypatch.setenv(f"{PREFIX}PASSWORD", "from-env")
    resource = EnvCredentialResource(bindings={f"{PREFIX}PASSWORD": "from-bindings"})

    credential = resource.resolve("deploy-server-key", StageName.LAUNCH)

    assert credential.password.get_secret_value() == "from-bindings"


def test_missing_credential(monkeypatch):
    monkeypatch.delenv(f"{PREFIX}KEY_FILE", raising=False)
    monkeypatch.delenv(f"{PREFIX}PASSWORD", raising=False)
    with pytest.raises(CredentialNotFoundError, match="KEY_FILE"):
        EnvCredentialResource().resolve("deploy-server-key", StageName.TRANSFER)


def test_scope_limits_stages():
    resource = EnvCredentialResource(
        bindings={
            f"{PREFIX}KEY_FILE": "/keys/id_ed25519",
            f"{PREFIX}SCOPES": "transfer",
        }
    )
    assert resource.resolve("deploy-server-key", StageName.TRANSFER).credential_id == (
        "deploy-server-key"
    )
    with pytest.raises(CredentialScopeError):
        resource.resolve("deploy-server-key", StageName.LAUNCH)


def test_unknown_scope_rejected():
    resource = EnvCredentialResource(
        bindings={
            f"{PREFIX}KEY_FILE": "/keys/id_ed25519",
            f"{PREFIX}SCOPES": "transfer,deploy",
        }
    )
    with pytest.raises(CredentialError, match="deploy"):
        resource.resolve("deploy-server-key", StageName.TRANSFER)


def test_custom_prefix():
    resource = EnvCredentialResource(
        prefix="SSH_", bindings={"SSH_PROD_PASSWORD": "secret"}
    )
    assert resource.resolve("prod", StageName.LAUNCH).password.get_secret_value() == "secret"
