# =============================================================================
# Deploy Trigger Service
# =============================================================================
# Builds a DeploymentRequest from the DEPLOY_* bindings and launches
# deploy_job. Webhook and manual triggers both go through trigger_deployment.
# =============================================================================

import logging
from dataclasses import dataclass
from typing import Optional

from libs.models import DeploySettings, DeploymentRequest, TriggerSource

from app.services.dagster_service import DagsterService

logger = logging.getLogger(__name__)


class DeploymentInProgressError(RuntimeError):
    """Another deploy_job run already holds the target."""

    def __init__(self, target_label: str, run_ids: list[str]):
        super().__init__(
            f"deployment already in progress for {target_label}: {', '.join(run_ids)}"
        )
        self.target_label = target_label
        self.run_ids = run_ids


@dataclass
class TriggerResult:
    """Outcome of a launched deployment."""

    deployment_id: str
    dagster_run_id: str
    target_label: str
    branch: str
    trigger: str


def trigger_deployment(
    dagster: DagsterService,
    settings: DeploySettings,
    trigger: TriggerSource,
    *,
    branch: Optional[str] = None,
    requested_by: Optional[str] = None,
) -> TriggerResult:
    """
    Launch deploy_job unless a run for the same target is still active.

    Raises:
        pydantic.ValidationError: The bindings or branch override are invalid
        DeploymentInProgressError: A queued/started run holds the target
        DagsterLaunchError / httpx.HTTPError: Dagster rejected or is unreachable
    """
    request: DeploymentRequest = settings.to_request(
        trigger, branch=branch, requested_by=requested_by
    )
    target_label = request.target.label

    active = dagster.find_active_deployments(target_label)
    if active:
        raise DeploymentInProgressError(target_label, [run.run_id for run in active])

    run_id = dagster.launch_deploy_run(request)
    logger.info(
        "Launched deployment %s (run %s) of %s to %s via %s",
        request.deployment_id,
        run_id,
        request.source.branch,
        target_label,
        trigger.value,
    )
    return TriggerResult(
        deployment_id=request.deployment_id,
        dagster_run_id=run_id,
        target_label=target_label,
        branch=request.source.branch,
        trigger=trigger.value,
    )
