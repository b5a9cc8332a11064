# =============================================================================
# Services Module
# =============================================================================
# Service wrappers for MongoDB and Dagster, plus the deployment trigger.
# =============================================================================

from app.services.mongodb_service import MongoDBService, get_mongodb_service
from app.services.dagster_service import (
    DagsterLaunchError,
    DagsterService,
    get_dagster_service,
)
from app.services.deploy_trigger import (
    DeploymentInProgressError,
    TriggerResult,
    trigger_deployment,
)

__all__ = [
    # MongoDB
    "MongoDBService",
    "get_mongodb_service",
    # Dagster
    "DagsterLaunchError",
    "DagsterService",
    "get_dagster_service",
    # Trigger
    "DeploymentInProgressError",
    "TriggerResult",
    "trigger_deployment",
]
