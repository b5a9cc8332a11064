# =============================================================================
# Remote Scripts
# =============================================================================
# Renders the shell text executed on the target host from a DeploymentPlan.
# Every interpolated value is shell-quoted.
# =============================================================================

"""Shell rendering for the remote bootstrap and launch of Stage C."""

import posixpath
import re
import shlex
from typing import Optional

from libs.models import DeploymentPlan, ExistingProcessPolicy, LaunchSpec

__all__ = [
    "ALREADY_RUNNING_EXIT_CODE",
    "render_command",
    "render_bootstrap_script",
    "render_launch_script",
    "render_stop_block",
    "render_running_check",
    "process_alive_command",
    "tail_command",
    "parse_launched_pid",
]

# Exit status of the launch script when the fail policy finds a live process
ALREADY_RUNNING_EXIT_CODE = 3

_PLACEHOLDER = re.compile(r"\{(app_dir|venv_dir|requirements)\}")


def render_command(template: str, app_dir: str, launch: LaunchSpec) -> str:
    """
    Substitute the known placeholders of a command template.

    Only {app_dir}, {venv_dir} and {requirements} are replaced; any other
    braces (e.g. ${HOME}) are left untouched for the remote shell.
    """
    values = {
        "app_dir": shlex.quote(app_dir),
        "venv_dir": shlex.quote(launch.venv_dir),
        "requirements": shlex.quote(launch.requirements),
    }
    return _PLACEHOLDER.sub(lambda m: values[m.group(1)], template)


def render_bootstrap_script(plan: DeploymentPlan, app_dir: str) -> str:
    """
    Render the ordered bootstrap commands as one `set -e` script.

    The commands share one shell so `cd` and venv activation carry over to
    the commands that follow them.
    """
    lines = ["set -e"]
    lines.extend(
        render_command(cmd, app_dir, plan.launch) for cmd in plan.bootstrap_commands
    )
    return "\n".join(lines) + "\n"


def _refuse_if_running(pid_file: str) -> str:
    return (
        f"if [ -f {pid_file} ]; then\n"
        f"  old_pid=$(cat {pid_file})\n"
        '  if [ -n "$old_pid" ] && kill -0 "$old_pid" 2>/dev/null; then\n'
        '    echo "application already running with pid $old_pid" >&2\n'
        f"    exit {ALREADY_RUNNING_EXIT_CODE}\n"
        "  fi\n"
        "fi"
    )


def render_running_check(launch: LaunchSpec, app_dir: str) -> str:
    """
    Script exiting with ALREADY_RUNNING_EXIT_CODE when the pid file names a
    live process. A missing app directory or pid file passes.

    Run before any file is copied so the fail policy leaves a running
    deployment untouched.
    """
    return (
        f"cd {shlex.quote(app_dir)} 2>/dev/null || exit 0\n"
        f"{_refuse_if_running(shlex.quote(launch.pid_file))}\n"
    )


def render_stop_block(launch: LaunchSpec, policy: ExistingProcessPolicy) -> str:
    """Shell block applying the existing-process policy to the pid file."""
    pid_file = shlex.quote(launch.pid_file)
    if policy == ExistingProcessPolicy.FAIL:
        return f"{_refuse_if_running(pid_file)}\nrm -f {pid_file}"
    return (
        f"if [ -f {pid_file} ]; then\n"
        f"  old_pid=$(cat {pid_file})\n"
        '  if [ -n "$old_pid" ] && kill -0 "$old_pid" 2>/dev/null; then\n'
        '    kill "$old_pid" || true\n'
        "    waited=0\n"
        '    while kill -0 "$old_pid" 2>/dev/null && '
        f'[ "$waited" -lt {launch.stop_grace_seconds} ]; do\n'
        "      sleep 1\n"
        "      waited=$((waited + 1))\n"
        "    done\n"
        '    if kill -0 "$old_pid" 2>/dev/null; then\n'
        '      kill -9 "$old_pid" || true\n'
        "    fi\n"
        '    echo "stopped previous process $old_pid"\n'
        "  fi\n"
        f"  rm -f {pid_file}\n"
        "fi"
    )


def render_launch_script(
    plan: DeploymentPlan,
    app_dir: str,
    deployment_id: Optional[str] = None,
) -> str:
    """
    Render the detached launch of the entry point.

    The process is started with nohup, stdin from /dev/null and combined
    output appended to the log file. Its PID is written to the pid file and
    echoed as the last line of stdout.
    """
    launch = plan.launch
    python = shlex.quote(posixpath.join(launch.venv_dir, "bin", "python"))
    command = " ".join(
        [python, shlex.quote(launch.entry_point)] + [shlex.quote(a) for a in launch.args]
    )
    log_file = shlex.quote(launch.log_file)
    pid_file = shlex.quote(launch.pid_file)

    lines = [
        "set -e",
        f"cd {shlex.quote(app_dir)}",
        render_stop_block(launch, plan.existing_process),
    ]
    if deployment_id:
        marker = shlex.quote(f"=== deployment {deployment_id} starting ===")
        lines.append(f"echo {marker} >> {log_file}")
    lines.extend(
        [
            f"nohup {command} >> {log_file} 2>&1 < /dev/null &",
            f"echo $! > {pid_file}",
            "echo $!",
        ]
    )
    return "\n".join(lines) + "\n"


def process_alive_command(pid: int) -> str:
    return f"kill -0 {int(pid)}"


def tail_command(path: str, lines: int = 50) -> str:
    return f"tail -n {int(lines)} {shlex.quote(path)}"


def parse_launched_pid(stdout: str) -> int:
    """
    Extract the PID echoed by the launch script.

    Raises:
        ValueError: If the last non-empty line is not an integer
    """
    candidates = [line.strip() for line in stdout.splitlines() if line.strip()]
    if not candidates:
        raise ValueError("launch script printed no PID")
    try:
        return int(candidates[-1])
    except ValueError as e:
        raise ValueError(f"launch script printed an invalid PID: {candidates[-1]!r}") from e
