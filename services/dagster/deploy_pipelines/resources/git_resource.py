# =============================================================================
# Git Resource - CLI wrapper for source fetch operations
# =============================================================================
# Provides a thin, stateless wrapper around the git command line.
# =============================================================================

from dataclasses import dataclass
import logging
import os
from pathlib import Path
import re
import subprocess
from typing import Optional

from dagster import ConfigurableResource
from pydantic import Field

__all__ = ["GitResource", "GitResult", "GitCommandError"]

logger = logging.getLogger(__name__)

_UNSAFE_DIR_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class GitCommandError(RuntimeError):
    """A git command exited non-zero."""

    def __init__(self, message: str, result: "GitResult"):
        super().__init__(message)
        self.result = result


@dataclass
class GitResult:
    """
    Serializable result from git operations.
    """
    success: bool
    command: list[str]
    stdout: str
    stderr: str
    return_code: int


class GitResource(ConfigurableResource):
    """
    Dagster resource for git CLI operations.

    Configuration:
        workspace_root: Directory holding working copies (one per repository)
        git_binary: git executable (default: "git")
        timeout_seconds: Per-command timeout, 0 disables (default: 0)

    Example:
        >>> git = GitResource(workspace_root="/var/lib/deploy/workspace")
        >>> checkout = git.checkout(
        ...     repo_url="https://github.com/example/flask-app.git",
        ...     branch="main",
        ... )
        >>> checkout["commit_sha"]
    """

    workspace_root: str = Field(
        "/tmp/deploy-workspace",
        description="Directory holding local working copies",
    )
    git_binary: str = Field("git", description="git executable")
    timeout_seconds: float = Field(
        0,
        description="Per-command timeout in seconds (0 disables)",
    )

    def _get_env(self) -> dict[str, str]:
        env = os.environ.copy()
        # Never block on an interactive credential prompt
        env["GIT_TERMINAL_PROMPT"] = "0"
        return env

    def working_copy_path(self, repo_url: str, branch: str) -> Path:
        """Derive a stable local directory for a repository/branch pair."""
        tail = repo_url.rstrip("/").rsplit("/", 1)[-1].rsplit(":", 1)[-1]
        if tail.endswith(".git"):
            tail = tail[:-4]
        name = _UNSAFE_DIR_CHARS.sub("_", f"{tail or 'source'}-{branch}")
        return Path(self.workspace_root) / name

    def _run_command(self, args: list[str], cwd: Optional[str] = None) -> GitResult:
        """
        Execute a git command via subprocess.

        Args:
            args: git arguments (without the binary)
            cwd: Working directory

        Returns:
            GitResult with execution details, stdout, stderr, and return code
        """
        cmd = [self.git_binary, *args]
        logger.debug("Running %s", cmd)
        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                cwd=cwd,
                env=self._get_env(),
                timeout=self.timeout_seconds or None,
            )
        except subprocess.TimeoutExpired as e:
            return GitResult(
                success=False,
                command=cmd,
                stdout=e.stdout if isinstance(e.stdout, str) else "",
                stderr=f"timed out after {self.timeout_seconds}s",
                return_code=-1,
            )

        return GitResult(
            success=result.returncode == 0,
            command=cmd,
            stdout=result.stdout,
            stderr=result.stderr,
            return_code=result.returncode,
        )

    def _check(self, result: GitResult, what: str) -> GitResult:
        if not result.success:
            raise GitCommandError(
                f"{what} failed (exit {result.return_code}): {result.stderr.strip()}",
                result,
            )
        return result

    def ls_remote_head(self, repo_url: str, branch: str) -> Optional[str]:
        """
        Return the commit SHA of `branch` on the remote, or None if absent.

        Raises:
            GitCommandError: If the remote is unreachable
        """
        result = self._check(
            self._run_command(["ls-remote", "--heads", repo_url, f"refs/heads/{branch}"]),
            f"git ls-remote {repo_url}",
        )
        for line in result.stdout.splitlines():
            parts = line.split()
            if len(parts) == 2 and parts[1] == f"refs/heads/{branch}":
                return parts[0]
        return None

    def clone(self, repo_url: str, branch: str, dest: Path) -> GitResult:
        dest.parent.mkdir(parents=True, exist_ok=True)
        return self._run_command(
            ["clone", "--branch", branch, "--single-branch", repo_url, str(dest)]
        )

    def update(self, dest: Path, branch: str) -> GitResult:
        """Fetch the branch and hard-reset the working copy to it."""
        fetch = self._run_command(["fetch", "--prune", "origin", branch], cwd=str(dest))
        if not fetch.success:
            return fetch
        checkout = self._run_command(
            ["checkout", "-B", branch, f"origin/{branch}"], cwd=str(dest)
        )
        if not checkout.success:
            return checkout
        reset = self._run_command(["reset", "--hard", f"origin/{branch}"], cwd=str(dest))
        if not reset.success:
            return reset
        return self._run_command(["clean", "-fdx"], cwd=str(dest))

    def rev_parse(self, dest: Path, ref: str = "HEAD") -> str:
        result = self._check(
            self._run_command(["rev-parse", ref], cwd=str(dest)),
            f"git rev-parse {ref}",
        )
        return result.stdout.strip()

    def checkout(self, repo_url: str, branch: str) -> dict:
        """
        Clone or update the working copy for repo/branch.

        Verifies the branch exists on the remote first, so a missing branch
        fails without touching the workspace.

        Returns:
            Dict with working_copy, commit_sha, remote_sha and action

        Raises:
            GitCommandError: Remote unreachable or clone/update failed
            ValueError: Branch does not exist on the remote
        """
        remote_sha = self.ls_remote_head(repo_url, branch)
        if remote_sha is None:
            raise ValueError(f"branch {branch!r} does not exist on {repo_url}")

        dest = self.working_copy_path(repo_url, branch)
        if (dest / ".git").is_dir():
            action = "update"
            self._check(self.update(dest, branch), f"git update {dest}")
        else:
            action = "clone"
            self._check(self.clone(repo_url, branch, dest), f"git clone {repo_url}")

        commit_sha = self.rev_parse(dest)
        logger.info("Checked out %s@%s at %s (%s)", repo_url, branch, commit_sha, action)
        return {
            "working_copy": str(dest),
            "commit_sha": commit_sha,
            "remote_sha": remote_sha,
            "action": action,
        }
