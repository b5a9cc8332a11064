# =============================================================================
# FastAPI Main Application
# =============================================================================
# Entry point for the deployment trigger webapp.
# =============================================================================

import logging

from fastapi import FastAPI

from app import __version__
from app.routers import deployments, health, webhooks

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

# Application instance
app = FastAPI(
    title="Deployment Trigger Webapp",
    description="Trigger and track SSH deployments run by the deploy_job pipeline.",
    version=__version__,
)

# Include routers
app.include_router(health.router)
app.include_router(webhooks.router)
app.include_router(deployments.router)


@app.get("/")
async def index() -> dict:
    """Service index listing the available endpoints."""
    return {
        "service": "deploy-webapp",
        "version": __version__,
        "endpoints": [
            "/health",
            "/ready",
            "/github-webhook/",
            "/deployments",
        ],
    }
