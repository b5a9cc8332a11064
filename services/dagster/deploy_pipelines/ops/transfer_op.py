# =============================================================================
# Transfer Op - Stage B
# =============================================================================
# Copies the plan's transfer list from the working copy into the remote
# application directory over SFTP.
# =============================================================================

import posixpath
from pathlib import Path
from typing import Any, Dict

from dagster import op, OpExecutionContext

from libs.models import DeploymentRequest, ExistingProcessPolicy, StageName
from libs.remote_scripts import ALREADY_RUNNING_EXIT_CODE, render_running_check
from ..resources.ssh_resource import SSHCommandError


def _check_local_paths(working_copy: Path, paths: list[str]) -> None:
    """
    Raise FileNotFoundError listing every transfer path missing locally.

    Runs before any connection is opened so a bad list never produces a
    partial transfer.
    """
    missing = [p for p in paths if not (working_copy / p).exists()]
    if missing:
        raise FileNotFoundError(
            f"transfer paths missing from working copy {working_copy}: {missing}"
        )


def _refuse_if_running(remote, deployment: DeploymentRequest, log) -> None:
    """
    Under the fail policy, abort before anything is copied when the previous
    launch is still alive.

    Raises:
        RuntimeError: The pid file names a live process
    """
    target = deployment.target
    result = remote.run_script(render_running_check(deployment.plan.launch, target.app_dir))
    if result.exit_status == ALREADY_RUNNING_EXIT_CODE:
        raise RuntimeError(
            f"application already running on {target.host} and policy is "
            f"'{deployment.plan.existing_process.value}': {result.stderr.strip()}"
        )
    if not result.success:
        raise SSHCommandError(
            f"running-process check failed on {target.host} (exit {result.exit_status})",
            result,
        )
    log.info(f"No running application under {target.app_dir}")


def _transfer_artifacts(
    ssh,
    credentials,
    fetch_result: Dict[str, Any],
    log,
) -> Dict[str, Any]:
    """
    Core logic for Stage B.

    This function is extracted for easier unit testing without Dagster context.

    Args:
        ssh: SSHResource instance
        credentials: Credential resolver (resolve(credential_id, scope))
        fetch_result: Output of Stage A
        log: Logger instance (context.log)

    Returns:
        Transfer result dict: the fetch result plus transferred paths and files

    Raises:
        FileNotFoundError: A transfer path is missing from the working copy
        CredentialError: The credential cannot be resolved for this stage
        SSHConnectionError: Host unreachable or authentication failed
        RuntimeError: Fail policy and the application is still running
        SSHCommandError: Remote directory creation failed
    """
    deployment = DeploymentRequest.model_validate(fetch_result["request"])
    target = deployment.target
    paths = deployment.plan.transfer.paths
    working_copy = Path(fetch_result["working_copy"])

    _check_local_paths(working_copy, paths)

    credential = credentials.resolve(target.credential_id, StageName.TRANSFER)

    uploaded: list[str] = []
    with ssh.session(target.host, target.user, credential, port=target.port) as remote:
        if deployment.plan.existing_process == ExistingProcessPolicy.FAIL:
            _refuse_if_running(remote, deployment, log)

        log.info(f"Ensuring remote directory {target.app_dir} on {target.host}")
        remote.ensure_dir(target.app_dir)

        for rel_path in paths:
            remote_path = posixpath.join(target.app_dir, rel_path)
            parent = posixpath.dirname(remote_path)
            if parent != target.app_dir:
                remote.ensure_dir(parent)
            files = remote.put_path(working_copy / rel_path, remote_path)
            log.info(f"Copied {rel_path} -> {remote_path} ({len(files)} file(s))")
            uploaded.extend(files)

    return {
        **fetch_result,
        "transferred": list(paths),
        "uploaded_files": uploaded,
    }


@op(required_resource_keys={"ssh", "credentials", "mongodb"})
def transfer_artifacts(context: OpExecutionContext, fetch_result: dict) -> dict:
    """
    Stage B: ensure the remote directory exists and copy the transfer list.

    Same-named remote entries are overwritten. An unreachable host or a
    rejected credential fails the run, so Stage C never executes.
    """
    result = _transfer_artifacts(
        ssh=context.resources.ssh,
        credentials=context.resources.credentials,
        fetch_result=fetch_result,
        log=context.log,
    )
    context.resources.mongodb.mark_stage_complete(context.run_id, StageName.TRANSFER)
    return result
