# =============================================================================
# Health Check Router
# =============================================================================
# Endpoints for container health checks and readiness probes.
# =============================================================================

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel

from app.auth.dependencies import AuthenticatedUser, get_current_user
from app.services.dagster_service import get_dagster_service
from app.services.mongodb_service import get_mongodb_service

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str


class ReadyResponse(BaseModel):
    """Readiness check response model."""

    status: str
    services: dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """
    Basic health check endpoint.

    Returns 200 if the service is running.
    No authentication required for container health checks.
    """
    from app import __version__

    return HealthResponse(status="healthy", version=__version__)


@router.get("/ready", response_model=ReadyResponse)
async def readiness_check(response: Response) -> ReadyResponse:
    """
    Readiness check endpoint.

    Verifies connectivity to MongoDB and the Dagster GraphQL API.
    Returns 503 when either is unreachable.
    """
    services: dict[str, str] = {}

    try:
        get_mongodb_service().ping()
        services["mongodb"] = "ok"
    except Exception as exc:
        services["mongodb"] = f"error: {exc}"

    try:
        get_dagster_service().ping()
        services["dagster"] = "ok"
    except Exception as exc:
        services["dagster"] = f"error: {exc}"

    ready = all(value == "ok" for value in services.values())
    if not ready:
        response.status_code = 503
    return ReadyResponse(status="ready" if ready else "degraded", services=services)


@router.get("/whoami")
async def whoami(
    current_user: AuthenticatedUser = Depends(get_current_user),
) -> dict:
    """
    Return the current authenticated user.

    Requires authentication - useful for testing auth flow.
    """
    return {
        "username": current_user.username,
        "display_name": current_user.display_name,
    }
