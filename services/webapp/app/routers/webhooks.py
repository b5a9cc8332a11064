# =============================================================================
# GitHub Webhook Router
# =============================================================================
# Receives push events and launches deploy_job for the configured branch.
# =============================================================================

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response
from pydantic import BaseModel, ValidationError

from app.config import Settings, get_deploy_settings, get_settings
from app.services.dagster_service import get_dagster_service
from app.services.deploy_trigger import (
    DeploymentInProgressError,
    trigger_deployment,
)
from app.services.github_webhook import matches_repository, parse_push, verify_signature
from libs.models import TriggerSource

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/github-webhook", tags=["webhooks"])


class WebhookResponse(BaseModel):
    """Response for webhook deliveries."""

    status: str
    detail: Optional[str] = None
    deployment_id: Optional[str] = None
    run_id: Optional[str] = None


@router.post("/", response_model=WebhookResponse)
async def github_webhook(
    request: Request,
    response: Response,
    x_github_event: Optional[str] = Header(None),
    x_hub_signature_256: Optional[str] = Header(None),
    x_github_delivery: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> WebhookResponse:
    """
    Handle a GitHub webhook delivery.

    - ping: 200 pong
    - push to the configured repository and branch: 202 with the launched run
    - anything else: 202 ignored
    """
    body = await request.body()

    if settings.webhook_secret and not verify_signature(
        settings.webhook_secret, body, x_hub_signature_256
    ):
        logger.warning("Rejected webhook delivery %s: bad signature", x_github_delivery)
        raise HTTPException(status_code=401, detail="Invalid webhook signature")

    if x_github_event == "ping":
        return WebhookResponse(status="pong")

    response.status_code = 202

    if x_github_event != "push":
        return WebhookResponse(
            status="ignored", detail=f"Unhandled event: {x_github_event}"
        )

    try:
        payload = json.loads(body or b"{}")
    except ValueError as exc:
        raise HTTPException(status_code=400, detail="Malformed JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=400, detail="Push payload must be a JSON object")

    try:
        deploy_settings = get_deploy_settings()
    except ValidationError as exc:
        raise HTTPException(
            status_code=503, detail=f"Deployment bindings are not configured: {exc}"
        ) from exc

    event = parse_push(payload)
    if not matches_repository(event, deploy_settings.repo_url):
        return WebhookResponse(status="ignored", detail="Push to a different repository")
    if event.deleted or event.branch != deploy_settings.branch:
        return WebhookResponse(
            status="ignored", detail=f"Push to untracked ref: {payload.get('ref')}"
        )

    try:
        result = trigger_deployment(
            get_dagster_service(),
            deploy_settings,
            TriggerSource.WEBHOOK,
            branch=event.branch,
            requested_by=event.sender,
        )
    except DeploymentInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except ValidationError as exc:
        raise HTTPException(
            status_code=422,
            detail=exc.errors(include_url=False, include_context=False, include_input=False),
        ) from exc
    except Exception as exc:
        raise HTTPException(
            status_code=503, detail=f"Failed to launch deployment: {exc}"
        ) from exc

    logger.info(
        "Webhook delivery %s launched %s", x_github_delivery, result.deployment_id
    )
    return WebhookResponse(
        status="accepted",
        deployment_id=result.deployment_id,
        run_id=result.dagster_run_id,
    )
