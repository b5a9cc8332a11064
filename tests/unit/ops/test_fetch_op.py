# =============================================================================
# Unit Tests: Fetch Op (Stage A)
# =============================================================================

from unittest.mock import Mock

import pytest
from dagster import build_op_context

from libs.models import StageName
from services.dagster.deploy_pipelines.ops.common_ops import init_deployment_op
from services.dagster.deploy_pipelines.ops.fetch_op import _fetch_source, fetch_source
from services.dagster.deploy_pipelines.resources.git_resource import GitCommandError, GitResult

SHA = "b" * 40


@pytest.fixture
def mock_git():
    git = Mock()
    git.checkout.return_value = {
        "working_copy": "/tmp/deploy-workspace/flask-app-main",
        "commit_sha": SHA,
        "remote_sha": SHA,
        "action": "clone",
    }
    return git


def test_fetch_checks_out_requested_branch(mock_git, valid_request_json, mock_log):
    result = _fetch_source(mock_git, valid_request_json, mock_log)

    mock_git.checkout.assert_called_once_with(
        repo_url="https://github.com/example/flask-app.git", branch="main"
    )
    assert result["working_copy"] == "/tmp/deploy-workspace/flask-app-main"
    assert result["commit_sha"] == SHA
    assert result["action"] == "clone"
    assert result["request"] == valid_request_json


def test_missing_branch_propagates(mock_git, valid_request_json, mock_log):
    mock_git.checkout.side_effect = ValueError("branch 'main' does not exist")
    with pytest.raises(ValueError, match="does not exist"):
        _fetch_source(mock_git, valid_request_json, mock_log)


def test_unreachable_remote_propagates(mock_git, valid_request_json, mock_log):
    mock_git.checkout.side_effect = GitCommandError(
        "git ls-remote failed", GitResult(False, ["git"], "", "fatal", 128)
    )
    with pytest.raises(GitCommandError):
        _fetch_source(mock_git, valid_request_json, mock_log)


def test_fetch_op_marks_stage_complete(mock_git, valid_request_json):
    mock_mongodb = Mock()
    context = build_op_context(resources={"git": mock_git, "mongodb": mock_mongodb})

    result = fetch_source(context, valid_request_json)

    assert result["commit_sha"] == SHA
    args, kwargs = mock_mongodb.mark_stage_complete.call_args
    assert args[1] == StageName.FETCH
    assert kwargs == {"commit_sha": SHA}


def test_fetch_op_failure_does_not_mark_stage(mock_git, valid_request_json):
    mock_git.checkout.side_effect = ValueError("branch missing")
    mock_mongodb = Mock()
    context = build_op_context(resources={"git": mock_git, "mongodb": mock_mongodb})

    with pytest.raises(ValueError):
        fetch_source(context, valid_request_json)

    mock_mongodb.mark_stage_complete.assert_not_called()


# =============================================================================
# init_deployment_op
# =============================================================================

def test_init_op_creates_ledger_record(valid_request_dict):
    mock_mongodb = Mock()
    mock_mongodb.insert_deployment.return_value = "doc_1"
    context = build_op_context(resources={"mongodb": mock_mongodb})

    result = init_deployment_op(context, valid_request_dict)

    record = mock_mongodb.insert_deployment.call_args[0][0]
    assert record.deployment_id == "deploy_0123456789ab"
    assert record.target_label == "ubuntu@203.0.113.10:/home/ubuntu/app"
    assert result["plan"]["version"] == 1
    assert result["trigger"] == "webhook"


def test_init_op_accepts_wrapped_run_config_value(valid_request_dict):
    mock_mongodb = Mock()
    context = build_op_context(resources={"mongodb": mock_mongodb})

    result = init_deployment_op(context, {"value": valid_request_dict})

    assert result["deployment_id"] == "deploy_0123456789ab"


def test_init_op_rejects_invalid_request(valid_request_dict):
    from pydantic import ValidationError

    mock_mongodb = Mock()
    context = build_op_context(resources={"mongodb": mock_mongodb})
    bad = {**valid_request_dict, "target": {**valid_request_dict["target"], "app_dir": "relative"}}

    with pytest.raises(ValidationError):
        init_deployment_op(context, bad)

    mock_mongodb.insert_deployment.assert_not_called()
