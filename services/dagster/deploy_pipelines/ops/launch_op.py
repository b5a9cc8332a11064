# =============================================================================
# Launch Op - Stage C
# =============================================================================
# Bootstraps the remote runtime, launches the application detached, and
# blocks until it answers on its port.
# =============================================================================

from dataclasses import asdict
import posixpath
from typing import Any, Dict

from dagster import op, OpExecutionContext

from libs.models import DeploymentRequest, StageName
from libs.readiness import ReadinessError, wait_for_ready
from libs.remote_scripts import (
    ALREADY_RUNNING_EXIT_CODE,
    parse_launched_pid,
    render_bootstrap_script,
    render_launch_script,
)
from ..resources.ssh_resource import SSHCommandError

LOG_TAIL_LINES = 50


def _tail(text: str, lines: int = 20) -> str:
    return "\n".join(text.strip().splitlines()[-lines:])


def _bootstrap_and_launch(
    ssh,
    credentials,
    transfer_result: Dict[str, Any],
    log,
) -> Dict[str, Any]:
    """
    Core logic for Stage C.

    This function is extracted for easier unit testing without Dagster context.

    Flow:
    1. Run the bootstrap commands in one `set -e` shell
    2. Apply the existing-process policy and launch with nohup
    3. Poll the application port until it responds, failing early if the
       launched PID exits

    Args:
        ssh: SSHResource instance
        credentials: Credential resolver (resolve(credential_id, scope))
        transfer_result: Output of Stage B
        log: Logger instance (context.log)

    Returns:
        Launch result dict: request, commit_sha, pid, log_file, readiness

    Raises:
        CredentialError: The credential cannot be resolved for this stage
        SSHConnectionError: Host unreachable or authentication failed
        SSHCommandError: Bootstrap or launch exited non-zero
        RuntimeError: Application already running under the fail policy
        ReadinessError: Application did not answer before the deadline
    """
    deployment = DeploymentRequest.model_validate(transfer_result["request"])
    target = deployment.target
    plan = deployment.plan
    log_path = posixpath.join(target.app_dir, plan.launch.log_file)

    credential = credentials.resolve(target.credential_id, StageName.LAUNCH)

    with ssh.session(target.host, target.user, credential, port=target.port) as remote:
        # Step 1: bootstrap
        log.info(
            f"Bootstrapping {target.host}:{target.app_dir} "
            f"({len(plan.bootstrap_commands)} command(s))"
        )
        bootstrap = remote.run_script(render_bootstrap_script(plan, target.app_dir))
        if not bootstrap.success:
            raise SSHCommandError(
                f"bootstrap failed on {target.host} (exit {bootstrap.exit_status}):\n"
                f"{_tail(bootstrap.stderr or bootstrap.stdout)}",
                bootstrap,
            )

        # Step 2: launch
        launch = remote.run_script(
            render_launch_script(plan, target.app_dir, deployment.deployment_id)
        )
        if launch.exit_status == ALREADY_RUNNING_EXIT_CODE:
            raise RuntimeError(
                f"application already running on {target.host} and policy is "
                f"'{plan.existing_process.value}': {launch.stderr.strip()}"
            )
        if not launch.success:
            raise SSHCommandError(
                f"launch failed on {target.host} (exit {launch.exit_status}):\n"
                f"{_tail(launch.stderr or launch.stdout)}",
                launch,
            )
        pid = parse_launched_pid(launch.stdout)
        for line in launch.stdout.splitlines()[:-1]:
            if line.strip():
                log.info(line.strip())
        log.info(f"Launched {plan.launch.entry_point} as pid {pid}, logging to {log_path}")

        # Step 3: readiness
        readiness = plan.readiness
        readiness_result = None
        if readiness.enabled:
            url = readiness.url_for(target.host)
            log.info(f"Waiting up to {readiness.timeout_seconds}s for {url}")
            readiness_result = wait_for_ready(
                url,
                timeout=readiness.timeout_seconds,
                interval=readiness.interval_seconds,
                request_timeout=readiness.request_timeout_seconds,
                alive_check=lambda: remote.is_process_alive(pid),
            )
            if not readiness_result.ready:
                log_tail = remote.read_tail(log_path, LOG_TAIL_LINES)
                reason = (
                    f"process {pid} exited"
                    if readiness_result.process_exited
                    else f"no response within {readiness.timeout_seconds}s"
                )
                raise ReadinessError(
                    f"application on {target.host} not ready: {reason} "
                    f"(last error: {readiness_result.last_error}).\n"
                    f"Last lines of {log_path}:\n{log_tail}"
                )
            log.info(
                f"Application answered {readiness_result.status_code} after "
                f"{readiness_result.attempts} attempt(s)"
            )
        else:
            log.warning("Readiness check disabled; launch is not verified")

    return {
        "request": transfer_result["request"],
        "commit_sha": transfer_result.get("commit_sha"),
        "pid": pid,
        "log_file": log_path,
        "readiness": asdict(readiness_result) if readiness_result else None,
    }


@op(required_resource_keys={"ssh", "credentials", "mongodb"})
def bootstrap_and_launch(context: OpExecutionContext, transfer_result: dict) -> dict:
    """
    Stage C: install the runtime and dependencies, launch the entry point
    detached, and verify it answers before declaring success.
    """
    result = _bootstrap_and_launch(
        ssh=context.resources.ssh,
        credentials=context.resources.credentials,
        transfer_result=transfer_result,
        log=context.log,
    )
    context.resources.mongodb.mark_stage_complete(
        context.run_id,
        StageName.LAUNCH,
        launched_pid=result["pid"],
    )
    return result
