"""Branch head sensor: polls the source branch and deploys new commits.

Alternative to the webhook trigger for remotes that cannot reach the
webapp. Disabled by default. The cursor holds the last deployed commit SHA.
"""

from dagster import (
    DefaultSensorStatus,
    RunRequest,
    SensorEvaluationContext,
    SkipReason,
    sensor,
)
from pydantic import ValidationError

from libs.models import DeploySettings, TriggerSource
from libs.run_config import build_deploy_run_config, build_deploy_tags

from ..jobs import deploy_job
from ..resources import GitResource
from ..resources.git_resource import GitCommandError


def _load_settings() -> DeploySettings | None:
    try:
        return DeploySettings()
    except ValidationError:
        return None


@sensor(
    job=deploy_job,
    minimum_interval_seconds=60,
    default_status=DefaultSensorStatus.STOPPED,
    description="Deploys when the configured branch head moves",
)
def branch_head_sensor(context: SensorEvaluationContext, git: GitResource):
    """
    Compare the remote branch head with the last deployed commit.

    Yields:
        RunRequest keyed by target and commit SHA, or SkipReason
    """
    settings = _load_settings()
    if settings is None:
        yield SkipReason("DEPLOY_* settings are not configured")
        return

    try:
        head = git.ls_remote_head(settings.repo_url, settings.branch)
    except GitCommandError as e:
        context.log.warning(f"Cannot poll {settings.repo_url}: {e}")
        yield SkipReason(f"Remote unreachable: {e}")
        return

    if head is None:
        yield SkipReason(f"Branch {settings.branch!r} not found on {settings.repo_url}")
        return

    if head == context.cursor:
        yield SkipReason(f"No new commits on {settings.branch} (head {head[:12]})")
        return

    try:
        request = settings.to_request(TriggerSource.POLL, requested_by=f"poll:{head[:12]}")
    except (ValidationError, OSError, ValueError) as e:
        context.log.error(f"Invalid deployment settings: {e}")
        yield SkipReason(f"Invalid deployment settings: {e}")
        return

    context.log.info(
        f"Branch {settings.branch} moved {context.cursor or '(none)'} -> {head}; "
        f"deploying to {request.target.label}"
    )
    yield RunRequest(
        run_key=f"{request.target.label}:{head}",
        run_config=build_deploy_run_config(request),
        tags={**build_deploy_tags(request), "commit_sha": head},
    )
    context.update_cursor(head)
