"""Deployment job (op-based).

Runs the three stages strictly in order. Each op consumes the previous
op's output, so a failed stage stops every later stage.
"""

from dagster import job

from ..ops import (
    bootstrap_and_launch,
    fetch_source,
    init_deployment_op,
    transfer_artifacts,
)


@job(
    name="deploy_job",
    description="Fetches the source branch, copies the application to the remote host over SSH, then bootstraps and launches it",
)
def deploy_job():
    """
    Main deployment job triggered by the webhook, manual trigger or branch sensor.

    Pipeline flow:
    1. init_deployment_op: Validates the request and opens the ledger record
    2. fetch_source: Stage A, clone/update the working copy
    3. transfer_artifacts: Stage B, mkdir -p + SFTP copy of the transfer list
    4. bootstrap_and_launch: Stage C, runtime bootstrap, detached launch, readiness

    The request is passed as an op input to init_deployment_op via run config.
    """
    request = init_deployment_op()
    fetched = fetch_source(request)
    transferred = transfer_artifacts(fetched)
    bootstrap_and_launch(transferred)
