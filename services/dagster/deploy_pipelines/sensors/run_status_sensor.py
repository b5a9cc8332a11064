# =============================================================================
# Run Status Sensor - Lifecycle tracking for the deployment ledger
# =============================================================================
# Monitors deploy_job run lifecycle and finalizes deployment documents.
# =============================================================================

"""Run status sensors that finalize deployment ledger documents."""

from datetime import datetime, timezone
from typing import Optional

from dagster import (
    DagsterRunStatus,
    DefaultSensorStatus,
    RunFailureSensorContext,
    RunStatusSensorContext,
    run_failure_sensor,
    run_status_sensor,
)

from libs.models import DeploymentStatus
from libs.run_config import DEPLOY_JOB_NAME, TAG_DEPLOYMENT_ID


__all__ = ["deployment_run_failure_sensor", "deployment_run_success_sensor"]


TRACKED_JOBS = frozenset([DEPLOY_JOB_NAME])

DEPLOYMENTS_COLLECTION = "deployments"


def _get_deployment_id_from_run(run_tags: dict) -> str | None:
    """Extract deployment_id from run tags."""
    return run_tags.get(TAG_DEPLOYMENT_ID)


def _get_mongodb_client():
    """Create a MongoDB client using settings from environment."""
    from libs.models.config import MongoSettings
    from pymongo import MongoClient

    settings = MongoSettings()
    client = MongoClient(settings.connection_string)
    return client, settings.database


def _resolve_end_time(context) -> datetime:
    """Accurate end time from Dagster run storage, else now."""
    run_stats = context.instance.get_run_stats(context.dagster_run.run_id)
    if run_stats and run_stats.end_time:
        return datetime.fromtimestamp(run_stats.end_time, tz=timezone.utc)
    return datetime.now(timezone.utc)


def _failure_message(context) -> Optional[str]:
    failure_event = getattr(context, "failure_event", None)
    message = getattr(failure_event, "message", None) if failure_event else None
    return message or None


def _finalize_deployment(
    db,
    dagster_run_id: str,
    status: DeploymentStatus,
    end_time: datetime,
    error_message: Optional[str] = None,
) -> None:
    """Write the terminal status onto the deployment document."""
    update = {
        "status": status.value,
        "completed_at": end_time,
    }
    if error_message:
        update["error_message"] = error_message
    db[DEPLOYMENTS_COLLECTION].update_one(
        {"dagster_run_id": dagster_run_id},
        {"$set": update},
    )


def _handle_run_failure(context, db) -> Optional[DeploymentStatus]:
    dagster_run = context.dagster_run
    if dagster_run.job_name not in TRACKED_JOBS:
        context.log.debug(f"Skipping untracked job: {dagster_run.job_name}")
        return None

    dagster_run_id = dagster_run.run_id
    deployment_id = _get_deployment_id_from_run(dagster_run.tags)

    if dagster_run.status == DagsterRunStatus.CANCELED:
        status = DeploymentStatus.CANCELED
        error_message = f"Run canceled. See Dagster UI for details: {dagster_run_id}"
    else:
        status = DeploymentStatus.FAILURE
        error_message = _failure_message(context) or (
            f"Run failed. See Dagster UI for details: {dagster_run_id}"
        )

    _finalize_deployment(db, dagster_run_id, status, _resolve_end_time(context), error_message)
    context.log.info(
        f"Updated deployment {deployment_id or dagster_run_id} to {status.value}"
    )
    return status


def _handle_run_success(context, db) -> Optional[DeploymentStatus]:
    dagster_run = context.dagster_run
    if dagster_run.job_name not in TRACKED_JOBS:
        context.log.debug(f"Skipping untracked job: {dagster_run.job_name}")
        return None

    deployment_id = _get_deployment_id_from_run(dagster_run.tags)
    _finalize_deployment(
        db,
        dagster_run.run_id,
        DeploymentStatus.SUCCESS,
        _resolve_end_time(context),
    )
    context.log.info(
        f"Updated deployment {deployment_id or dagster_run.run_id} to SUCCESS"
    )
    return DeploymentStatus.SUCCESS


@run_failure_sensor(
    name="deployment_run_failure_sensor",
    description="Marks deployment documents FAILURE/CANCELED when deploy_job runs fail",
    default_status=DefaultSensorStatus.RUNNING,
)
def deployment_run_failure_sensor(context: RunFailureSensorContext):
    """
    Handle deploy_job failures and cancellations.
    """
    client, db_name = _get_mongodb_client()
    try:
        _handle_run_failure(context, client[db_name])
    finally:
        client.close()


@run_status_sensor(
    run_status=DagsterRunStatus.SUCCESS,
    name="deployment_run_success_sensor",
    description="Marks deployment documents SUCCESS when deploy_job runs succeed",
    default_status=DefaultSensorStatus.RUNNING,
)
def deployment_run_success_sensor(context: RunStatusSensorContext):
    """
    Handle successful deploy_job completions.
    """
    client, db_name = _get_mongodb_client()
    try:
        _handle_run_success(context, client[db_name])
    finally:
        client.close()
