# =============================================================================
# Common Ops - Run initialization
# =============================================================================
# Validates the deployment request and opens the ledger record before any
# stage runs.
# =============================================================================

"""Common operations shared by deployment jobs."""

from dagster import op, OpExecutionContext

from libs.models import DeploymentRecord, DeploymentRequest


__all__ = ["init_deployment_op"]


def _unwrap_request(request: dict) -> dict:
    """Accept the request either bare or still wrapped in its run-config `value` key."""
    value = request.get("value")
    if set(request) == {"value"} and isinstance(value, dict):
        return value
    return request


@op(required_resource_keys={"mongodb"})
def init_deployment_op(context: OpExecutionContext, request: dict) -> dict:
    """
    Validate the request and create the ledger document at job start.

    This op MUST be the first step of deploy_job so the ledger document
    exists before any stage attempts to mark itself complete.

    Args:
        context: Dagster op execution context
        request: DeploymentRequest as a JSON-compatible dict (run config input)

    Returns:
        The normalized request dict (passthrough for downstream ops)

    Raises:
        pydantic.ValidationError: If the request is malformed
    """
    deployment = DeploymentRequest.model_validate(_unwrap_request(request))
    mongodb = context.resources.mongodb

    context.log.info(
        f"Initializing deployment {deployment.deployment_id}: "
        f"{deployment.source.repo_url}@{deployment.source.branch} -> "
        f"{deployment.target.label} (trigger={deployment.trigger.value}, "
        f"plan v{deployment.plan.version})"
    )

    record = DeploymentRecord.from_request(deployment, dagster_run_id=context.run_id)
    doc_id = mongodb.insert_deployment(record)
    context.log.info(f"Created deployment document: {doc_id}")

    return deployment.model_dump(mode="json")
