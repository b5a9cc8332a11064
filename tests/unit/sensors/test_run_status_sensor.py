"""Unit tests for run status sensors finalizing the deployment ledger."""

from datetime import datetime, timezone
from unittest.mock import MagicMock, Mock

import mongomock
import pytest
from dagster import DagsterRunStatus

from libs.models import DeploymentStatus
from services.dagster.deploy_pipelines.sensors.run_status_sensor import (
    DEPLOYMENTS_COLLECTION,
    TRACKED_JOBS,
    _failure_message,
    _get_deployment_id_from_run,
    _handle_run_failure,
    _handle_run_success,
    _resolve_end_time,
)


@pytest.fixture
def db():
    client = mongomock.MongoClient()
    database = client["deployments"]
    database[DEPLOYMENTS_COLLECTION].insert_one(
        {
            "deployment_id": "deploy_0123456789ab",
            "dagster_run_id": "run_123",
            "status": "running",
            "completed_at": None,
        }
    )
    return database


def _context(job_name="deploy_job", status=DagsterRunStatus.FAILURE, end_time=1704114000.0, message=None):
    context = MagicMock()
    context.dagster_run.job_name = job_name
    context.dagster_run.run_id = "run_123"
    context.dagster_run.status = status
    context.dagster_run.tags = {"deployment_id": "deploy_0123456789ab"}
    context.instance.get_run_stats.return_value = Mock(end_time=end_time)
    if message is None:
        context.failure_event = None
    else:
        context.failure_event = Mock(message=message)
    return context


class TestHelpers:
    def test_deploy_job_is_tracked(self):
        assert "deploy_job" in TRACKED_JOBS

    def test_deployment_id_from_tags(self):
        assert _get_deployment_id_from_run({"deployment_id": "deploy_x"}) == "deploy_x"
        assert _get_deployment_id_from_run({}) is None

    def test_end_time_from_run_stats(self):
        end = _resolve_end_time(_context(end_time=1704114000.0))
        assert end == datetime(2024, 1, 1, 13, 0, 0, tzinfo=timezone.utc)

    def test_end_time_falls_back_to_now(self):
        end = _resolve_end_time(_context(end_time=None))
        assert end.tzinfo is not None

    def test_failure_message(self):
        assert _failure_message(_context(message="Step failed")) == "Step failed"
        assert _failure_message(_context()) is None


class TestHandleRunFailure:
    def test_marks_failure_with_message(self, db):
        status = _handle_run_failure(_context(message="host unreachable"), db)

        assert status == DeploymentStatus.FAILURE
        doc = db[DEPLOYMENTS_COLLECTION].find_one({"dagster_run_id": "run_123"})
        assert doc["status"] == "failure"
        assert doc["error_message"] == "host unreachable"
        assert doc["completed_at"] is not None

    def test_marks_canceled(self, db):
        status = _handle_run_failure(_context(status=DagsterRunStatus.CANCELED), db)

        assert status == DeploymentStatus.CANCELED
        doc = db[DEPLOYMENTS_COLLECTION].find_one({"dagster_run_id": "run_123"})
        assert doc["status"] == "canceled"
        assert "canceled" in doc["error_message"]

    def test_ignores_untracked_jobs(self, db):
        assert _handle_run_failure(_context(job_name="other_job"), db) is None
        doc = db[DEPLOYMENTS_COLLECTION].find_one({"dagster_run_id": "run_123"})
        assert doc["status"] == "running"


class TestHandleRunSuccess:
    def test_marks_success(self, db):
        status = _handle_run_success(_context(status=DagsterRunStatus.SUCCESS), db)

        assert status == DeploymentStatus.SUCCESS
        doc = db[DEPLOYMENTS_COLLECTION].find_one({"dagster_run_id": "run_123"})
        assert doc["status"] == "success"
        assert "error_message" not in doc

    def test_ignores_untracked_jobs(self, db):
        assert _handle_run_success(_context(job_name="other_job"), db) is None
