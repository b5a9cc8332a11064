# =============================================================================
# Deployment Run Model
# =============================================================================
# Defines the ledger document tracking one deploy_job run in MongoDB.
# =============================================================================

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from .deployment import DeploymentRequest, TriggerSource


__all__ = ["DeploymentRecord", "DeploymentStatus", "StageName", "STAGE_ORDER"]


class DeploymentStatus(str, Enum):
    """Status of a deployment in the MongoDB ledger."""

    RUNNING = "running"
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELED = "canceled"


class StageName(str, Enum):
    """Ordered units of the deployment sequence."""

    FETCH = "fetch"
    TRANSFER = "transfer"
    LAUNCH = "launch"


STAGE_ORDER: tuple[StageName, ...] = (
    StageName.FETCH,
    StageName.TRANSFER,
    StageName.LAUNCH,
)


class DeploymentRecord(BaseModel):
    """
    Deployment document model for MongoDB tracking.

    Created synchronously when deploy_job starts (via init_deployment_op),
    advanced by each stage as it completes, and finalized by the run status
    sensors.

    Attributes:
        deployment_id: Request identifier (shared by webapp and ledger)
        dagster_run_id: Dagster's internal run ID (unique index)
        target_label: user@host:app_dir of the target
        host: Remote server address
        app_dir: Remote application directory
        repo_url: Source repository URL
        branch: Deployed branch
        trigger: webhook / manual / poll
        requested_by: Sender or user that requested the run
        status: Current status
        completed_stages: Stages finished so far, in order
        commit_sha: Commit resolved by the fetch stage
        launched_pid: PID recorded by the launch stage
        error_message: Error details if the run failed
        started_at: Timestamp when the run started
        completed_at: Timestamp when the run finished
    """

    deployment_id: str = Field(..., description="Deployment request ID")
    dagster_run_id: str = Field(..., description="Dagster run ID (unique)")
    target_label: str = Field(..., description="user@host:app_dir")
    host: str
    app_dir: str
    repo_url: str
    branch: str
    trigger: TriggerSource = TriggerSource.MANUAL
    requested_by: Optional[str] = None
    status: DeploymentStatus = DeploymentStatus.RUNNING
    completed_stages: list[StageName] = Field(default_factory=list)
    commit_sha: Optional[str] = None
    launched_pid: Optional[int] = None
    error_message: Optional[str] = None
    started_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Run start timestamp",
    )
    completed_at: Optional[datetime] = Field(
        None, description="Run completion timestamp"
    )

    @classmethod
    def from_request(
        cls, request: DeploymentRequest, dagster_run_id: str
    ) -> "DeploymentRecord":
        return cls(
            deployment_id=request.deployment_id,
            dagster_run_id=dagster_run_id,
            target_label=request.target.label,
            host=request.target.host,
            app_dir=request.target.app_dir,
            repo_url=request.source.repo_url,
            branch=request.source.branch,
            trigger=request.trigger,
            requested_by=request.requested_by,
        )

    def has_completed(self, stage: StageName) -> bool:
        return stage in self.completed_stages
