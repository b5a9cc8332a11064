# =============================================================================
# Deployments Router
# =============================================================================
# Manual deployment trigger and deployment ledger views.
# =============================================================================

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ValidationError

from app.auth.dependencies import AuthenticatedUser, get_current_user
from app.config import get_deploy_settings
from app.services.dagster_service import get_dagster_service
from app.services.deploy_trigger import (
    DeploymentInProgressError,
    trigger_deployment,
)
from app.services.mongodb_service import get_mongodb_service
from libs.models import TriggerSource

router = APIRouter(prefix="/deployments", tags=["deployments"])


class TriggerRequest(BaseModel):
    """Body for a manual deployment; branch defaults to DEPLOY_BRANCH."""

    branch: Optional[str] = None


class TriggerResponse(BaseModel):
    """Response for a launched deployment."""

    deployment_id: str
    run_id: str
    target: str
    branch: str
    trigger: str


class DeploymentListResponse(BaseModel):
    """Response for deployment listing."""

    deployments: list[dict]
    count: int


def _validation_detail(exc: ValidationError) -> list:
    return exc.errors(include_url=False, include_context=False, include_input=False)


@router.post("", response_model=TriggerResponse, status_code=202)
async def create_deployment(
    body: Optional[TriggerRequest] = None,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> TriggerResponse:
    """
    Launch deploy_job with the configured bindings.

    Builds the same request a webhook push would, with trigger=manual.
    """
    branch = body.branch if body else None

    try:
        deploy_settings = get_deploy_settings()
    except ValidationError as exc:
        raise HTTPException(
            status_code=503, detail=f"Deployment bindings are not configured: {exc}"
        ) from exc

    try:
        result = trigger_deployment(
            get_dagster_service(),
            deploy_settings,
            TriggerSource.MANUAL,
            branch=branch,
            requested_by=current_user.username,
        )
    except DeploymentInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(status_code=422, detail=_validation_detail(exc)) from exc
    except Exception as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Failed to launch deployment: {exc}",
        ) from exc

    return TriggerResponse(
        deployment_id=result.deployment_id,
        run_id=result.dagster_run_id,
        target=result.target_label,
        branch=result.branch,
        trigger=result.trigger,
    )


@router.get("", response_model=DeploymentListResponse)
async def list_deployments(
    status: Optional[str] = Query(
        None, description="Filter by status (running, success, failure, canceled)"
    ),
    target: Optional[str] = Query(None, description="Filter by user@host:app_dir"),
    limit: int = Query(25, ge=1, le=100, description="Maximum results"),
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> DeploymentListResponse:
    """List deployments, most recent first."""
    mongodb = get_mongodb_service()

    try:
        deployments = mongodb.list_deployments(
            status=status, target_label=target, limit=limit
        )
    except Exception as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Failed to query MongoDB: {exc}",
        ) from exc

    deployment_dicts = [
        {
            "deployment_id": d.deployment_id,
            "run_id": d.dagster_run_id,
            "target": d.target_label,
            "branch": d.branch,
            "trigger": d.trigger,
            "status": d.status,
            "completed_stages": d.completed_stages,
            "commit_sha": d.commit_sha,
            "started_at": d.started_at.isoformat() if d.started_at else None,
            "completed_at": d.completed_at.isoformat() if d.completed_at else None,
        }
        for d in deployments
    ]

    return DeploymentListResponse(
        deployments=deployment_dicts,
        count=len(deployment_dicts),
    )


@router.get("/{deployment_id}")
async def get_deployment(
    deployment_id: str,
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
    """Get the full ledger document for one deployment."""
    mongodb = get_mongodb_service()

    try:
        doc = mongodb.get_deployment(deployment_id)
    except Exception as exc:
        raise HTTPException(
            status_code=503,
            detail=f"Failed to query MongoDB: {exc}",
        ) from exc

    if not doc:
        raise HTTPException(
            status_code=404, detail=f"Deployment not found: {deployment_id}"
        )

    for key in ("started_at", "completed_at"):
        if doc.get(key) is not None and hasattr(doc[key], "isoformat"):
            doc[key] = doc[key].isoformat()
    return doc
