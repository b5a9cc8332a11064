# =============================================================================
# Deploy Run Config
# =============================================================================
# Builds the Dagster run config and tags for deploy_job from a request.
# Shared by the branch sensor and the webapp so every trigger launches the
# same job the same way.
# =============================================================================

from typing import Any

from libs.models import DeploymentRequest

__all__ = [
    "DEPLOY_JOB_NAME",
    "ENTRY_OP_NAME",
    "TAG_DEPLOYMENT_ID",
    "TAG_DEPLOY_TARGET",
    "TAG_TRIGGER",
    "TAG_BRANCH",
    "build_deploy_run_config",
    "build_deploy_tags",
]

DEPLOY_JOB_NAME = "deploy_job"
ENTRY_OP_NAME = "init_deployment_op"

TAG_DEPLOYMENT_ID = "deployment_id"
TAG_DEPLOY_TARGET = "deploy_target"
TAG_TRIGGER = "trigger"
TAG_BRANCH = "branch"


def build_deploy_run_config(request: DeploymentRequest) -> dict[str, Any]:
    """Pass the request as the input of the entry op."""
    return {
        "ops": {
            ENTRY_OP_NAME: {
                "inputs": {
                    "request": {"value": request.model_dump(mode="json")},
                }
            }
        }
    }


def build_deploy_tags(request: DeploymentRequest) -> dict[str, str]:
    tags = {
        TAG_DEPLOYMENT_ID: request.deployment_id,
        TAG_DEPLOY_TARGET: request.target.label,
        TAG_TRIGGER: request.trigger.value,
        TAG_BRANCH: request.source.branch,
    }
    if request.requested_by:
        tags["requested_by"] = request.requested_by
    return tags
