"""
Shared pytest fixtures for deployment tests.

Provides reusable request/target fixtures and in-memory fakes for the
remote transport so stage tests never open a real connection.
"""

from contextlib import contextmanager
from unittest.mock import Mock

import pytest

from libs.models import (
    Credential,
    DeploymentRequest,
    DeployTarget,
    SourceSpec,
)


# =============================================================================
# Request Fixtures
# =============================================================================

@pytest.fixture
def valid_target_dict():
    """Deployment target dictionary."""
    return {
        "host": "203.0.113.10",
        "user": "ubuntu",
        "app_dir": "/home/ubuntu/app",
        "credential_id": "deploy-server-key",
    }


@pytest.fixture
def valid_target(valid_target_dict):
    """DeployTarget model instance."""
    return DeployTarget(**valid_target_dict)


@pytest.fixture
def valid_source_dict():
    """Source repository dictionary."""
    return {
        "repo_url": "https://github.com/example/flask-app.git",
        "branch": "main",
    }


@pytest.fixture
def valid_request_dict(valid_target_dict, valid_source_dict):
    """Complete deployment request dictionary (as passed through run config)."""
    return {
        "deployment_id": "deploy_0123456789ab",
        "target": valid_target_dict,
        "source": valid_source_dict,
        "trigger": "webhook",
        "requested_by": "octocat",
        "requested_at": "2024-01-01T12:00:00+00:00",
    }


@pytest.fixture
def valid_request(valid_request_dict):
    """DeploymentRequest model instance."""
    return DeploymentRequest(**valid_request_dict)


@pytest.fixture
def valid_request_json(valid_request):
    """Request dict as ops receive it from init_deployment_op."""
    return valid_request.model_dump(mode="json")


@pytest.fixture
def deploy_env(monkeypatch):
    """DEPLOY_* bindings for DeploySettings."""
    values = {
        "DEPLOY_CREDENTIAL_ID": "deploy-server-key",
        "DEPLOY_SERVER": "203.0.113.10",
        "DEPLOY_USER": "ubuntu",
        "DEPLOY_APP_DIR": "/home/ubuntu/app",
        "DEPLOY_REPO_URL": "https://github.com/example/flask-app.git",
        "DEPLOY_BRANCH": "main",
    }
    for key, value in values.items():
        monkeypatch.setenv(key, value)
    monkeypatch.delenv("DEPLOY_PLAN_FILE", raising=False)
    monkeypatch.delenv("DEPLOY_APP_PORT", raising=False)
    monkeypatch.delenv("DEPLOY_SSH_PORT", raising=False)
    return values


# =============================================================================
# Working Copy Fixtures
# =============================================================================

@pytest.fixture
def working_copy(tmp_path):
    """Local working copy holding every path of the default transfer list."""
    root = tmp_path / "flask-app-main"
    root.mkdir()
    (root / "app.py").write_text("print('hello')\n")
    (root / "requirements.txt").write_text("flask\n")
    (root / "README.md").write_text("# flask-app\n")
    (root / "Dockerfile").write_text("FROM python:3.11-slim\n")
    tests_dir = root / "tests"
    tests_dir.mkdir()
    (tests_dir / "test_app.py").write_text("def test_ok():\n    assert True\n")
    return root


# =============================================================================
# Transport Fakes
# =============================================================================

@pytest.fixture
def key_credential():
    """Key-file credential granted to every stage."""
    return Credential(
        credential_id="deploy-server-key",
        private_key_path="/keys/deploy_ed25519",
    )


@pytest.fixture
def credentials_resolver(key_credential):
    """Mock resolver returning the key credential for any stage."""
    resolver = Mock()
    resolver.resolve.return_value = key_credential
    return resolver


@pytest.fixture
def remote_session():
    """Mock SSHSession; tests set run_script/put_path behaviour."""
    return Mock()


@pytest.fixture
def ssh_resource(remote_session):
    """Mock SSHResource whose session() yields remote_session."""
    resource = Mock()
    calls = []

    @contextmanager
    def session(host, user, credential, port=22):
        calls.append({"host": host, "user": user, "credential": credential, "port": port})
        yield remote_session

    resource.session.side_effect = session
    resource.session_calls = calls
    return resource


@pytest.fixture
def mock_log():
    """Stand-in for context.log."""
    return Mock()


@pytest.fixture
def source_spec(valid_source_dict):
    return SourceSpec(**valid_source_dict)
