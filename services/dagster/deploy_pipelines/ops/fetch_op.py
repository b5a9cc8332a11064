# =============================================================================
# Fetch Op - Stage A
# =============================================================================
# Clones or updates the local working copy at the requested branch.
# =============================================================================

from typing import Any, Dict

from dagster import op, OpExecutionContext

from libs.models import DeploymentRequest, StageName


def _fetch_source(git, request: Dict[str, Any], log) -> Dict[str, Any]:
    """
    Core logic for Stage A.

    This function is extracted for easier unit testing without Dagster context.

    Args:
        git: GitResource instance
        request: DeploymentRequest dict
        log: Logger instance (context.log)

    Returns:
        Fetch result dict: request, working_copy, commit_sha, action

    Raises:
        ValueError: Branch does not exist on the remote
        GitCommandError: Remote unreachable or clone/update failed
    """
    deployment = DeploymentRequest.model_validate(request)
    source = deployment.source

    log.info(f"Fetching {source.repo_url} at branch {source.branch}")
    checkout = git.checkout(repo_url=source.repo_url, branch=source.branch)
    log.info(
        f"Working copy {checkout['working_copy']} at {checkout['commit_sha']} "
        f"({checkout['action']})"
    )

    return {
        "request": request,
        "working_copy": checkout["working_copy"],
        "commit_sha": checkout["commit_sha"],
        "action": checkout["action"],
    }


@op(required_resource_keys={"git", "mongodb"})
def fetch_source(context: OpExecutionContext, request: dict) -> dict:
    """
    Stage A: retrieve the source tree at the requested branch.

    A missing branch or unreachable remote raises, which fails the run
    before Stage B can execute.
    """
    result = _fetch_source(
        git=context.resources.git,
        request=request,
        log=context.log,
    )
    context.resources.mongodb.mark_stage_complete(
        context.run_id,
        StageName.FETCH,
        commit_sha=result["commit_sha"],
    )
    return result
