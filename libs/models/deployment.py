# =============================================================================
# Deployment Models Module
# =============================================================================
# Defines models for a deployment run:
# - DeployTarget: Where the application goes (host, user, directory)
# - SourceSpec: Where the application comes from (repo, branch)
# - DeploymentPlan: Versioned transfer list + ordered remote commands
# - DeploymentRequest: Input contract for one run (immutable)
# =============================================================================

import json
import posixpath
import re
import uuid
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import ClassVar, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

__all__ = [
    "DeployTarget",
    "SourceSpec",
    "TransferSpec",
    "LaunchSpec",
    "ReadinessCheck",
    "ExistingProcessPolicy",
    "DeploymentPlan",
    "DeploymentRequest",
    "TriggerSource",
    "PLAN_VERSION",
    "generate_deployment_id",
]


PLAN_VERSION = 1

DEFAULT_TRANSFER_PATHS = [
    "app.py",
    "requirements.txt",
    "README.md",
    "tests",
    "Dockerfile",
]

DEFAULT_BOOTSTRAP_COMMANDS = [
    "sudo apt-get update -y",
    "sudo apt-get install -y python3 python3-venv python3-pip",
    "cd {app_dir}",
    "python3 -m venv {venv_dir}",
    ". {venv_dir}/bin/activate",
    "pip install --upgrade pip",
    "pip install -r {requirements}",
]

_HOST_PATTERN = re.compile(r"^[A-Za-z0-9._:\-\[\]]+$")
_USER_PATTERN = re.compile(r"^[a-z_][a-z0-9_.\-]*\$?$", re.IGNORECASE)


def generate_deployment_id() -> str:
    """Return a short, sortable-enough deployment identifier."""
    return f"deploy_{uuid.uuid4().hex[:12]}"


def _validate_relative_path(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("path cannot be empty")
    if value.startswith("/"):
        raise ValueError(f"path must be relative to the working copy: {value}")
    normalized = posixpath.normpath(value)
    if normalized == ".." or normalized.startswith("../"):
        raise ValueError(f"path escapes the working copy: {value}")
    if normalized == ".":
        raise ValueError("path cannot refer to the working copy root")
    return normalized


# =============================================================================
# Target / Source
# =============================================================================


class DeployTarget(BaseModel):
    """
    Remote host a deployment is delivered to.

    Attributes:
        host: Remote server address (hostname or IP)
        user: Remote user name for the SSH session
        app_dir: Absolute remote application directory
        credential_id: Identifier handed to the credential resolver
        port: Remote-shell port (default: 22)
    """

    host: str = Field(..., description="Remote server address")
    user: str = Field(..., description="Remote user name")
    app_dir: str = Field(..., description="Absolute remote application directory")
    credential_id: str = Field(..., description="Credential identifier")
    port: int = Field(22, ge=1, le=65535, description="SSH port")

    model_config = {"frozen": True}

    @field_validator("host")
    @classmethod
    def validate_host(cls, v: str) -> str:
        v = v.strip()
        if not v or not _HOST_PATTERN.match(v):
            raise ValueError(f"invalid host: {v!r}")
        return v

    @field_validator("user")
    @classmethod
    def validate_user(cls, v: str) -> str:
        v = v.strip()
        if not _USER_PATTERN.match(v):
            raise ValueError(f"invalid remote user: {v!r}")
        return v

    @field_validator("app_dir")
    @classmethod
    def validate_app_dir(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith("/"):
            raise ValueError(f"app_dir must be an absolute path: {v!r}")
        # normpath keeps a leading "//", so collapse it before the root check
        normalized = "/" + posixpath.normpath(v).lstrip("/")
        if normalized == "/":
            raise ValueError("app_dir cannot be the filesystem root")
        return normalized

    @field_validator("credential_id")
    @classmethod
    def validate_credential_id(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("credential_id cannot be empty")
        return v

    @property
    def label(self) -> str:
        """user@host:app_dir, used as the run tag for single-writer checks."""
        return f"{self.user}@{self.host}:{self.app_dir}"


class SourceSpec(BaseModel):
    """Version-control source of the application."""

    repo_url: str = Field(..., description="Source repository URL")
    branch: str = Field("main", description="Branch to deploy")

    model_config = {"frozen": True}

    @field_validator("repo_url")
    @classmethod
    def validate_repo_url(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("repo_url cannot be empty")
        return v

    @field_validator("branch")
    @classmethod
    def validate_branch(cls, v: str) -> str:
        v = v.strip()
        if v.startswith("refs/heads/"):
            v = v[len("refs/heads/"):]
        if not v or v.startswith("-") or ".." in v or " " in v:
            raise ValueError(f"invalid branch name: {v!r}")
        return v

    @property
    def repo_name(self) -> str:
        """Last path component of the repo URL without .git."""
        tail = self.repo_url.rstrip("/").rsplit("/", 1)[-1]
        tail = tail.rsplit(":", 1)[-1]
        if tail.endswith(".git"):
            tail = tail[:-4]
        return tail or "source"


# =============================================================================
# Plan
# =============================================================================


class TransferSpec(BaseModel):
    """Ordered list of working-copy paths copied to the remote directory."""

    paths: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TRANSFER_PATHS),
        description="Files/directories relative to the working copy",
    )

    @field_validator("paths")
    @classmethod
    def validate_paths(cls, v: list[str]) -> list[str]:
        if not v:
            raise ValueError("transfer list cannot be empty")
        cleaned = [_validate_relative_path(p) for p in v]
        duplicates = sorted({p for p in cleaned if cleaned.count(p) > 1})
        if duplicates:
            raise ValueError(f"duplicate transfer paths: {duplicates}")
        return cleaned


class LaunchSpec(BaseModel):
    """How the application entry point is started on the remote host."""

    entry_point: str = Field("app.py", description="Script run by the venv interpreter")
    args: list[str] = Field(
        default_factory=lambda: ["--host=0.0.0.0"],
        description="Command-line arguments for the entry point",
    )
    log_file: str = Field("app.log", description="Append-only combined output log")
    pid_file: str = Field("app.pid", description="File holding the launched PID")
    venv_dir: str = Field("venv", description="Virtual environment directory")
    requirements: str = Field("requirements.txt", description="Dependency manifest")
    stop_grace_seconds: int = Field(
        10, ge=0, description="Seconds between SIGTERM and SIGKILL on restart"
    )

    @field_validator("entry_point", "log_file", "pid_file", "venv_dir", "requirements")
    @classmethod
    def validate_relative(cls, v: str) -> str:
        return _validate_relative_path(v)


class ReadinessCheck(BaseModel):
    """HTTP readiness probe run after launch."""

    enabled: bool = True
    scheme: Literal["http", "https"] = "http"
    port: int = Field(5000, ge=1, le=65535, description="Application port")
    path: str = Field("/", description="Path requested on the application")
    timeout_seconds: float = Field(60.0, gt=0)
    interval_seconds: float = Field(2.0, gt=0)
    request_timeout_seconds: float = Field(5.0, gt=0)

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        return v if v.startswith("/") else f"/{v}"

    def url_for(self, host: str) -> str:
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return f"{self.scheme}://{host}:{self.port}{self.path}"


class ExistingProcessPolicy(str, Enum):
    """What Stage C does when a previous launch is still running."""

    RESTART = "restart"
    FAIL = "fail"


class DeploymentPlan(BaseModel):
    """
    Versioned description of what gets copied and what runs remotely.

    The plan replaces the inline file list and shell text of a hand-written
    pipeline so either can be substituted without touching the orchestration.

    Attributes:
        version: Plan schema version (only PLAN_VERSION is accepted)
        transfer: Paths copied in Stage B
        bootstrap_commands: Ordered command templates run in Stage C.
            Templates may use {app_dir}, {venv_dir} and {requirements};
            substituted values are shell-quoted.
        launch: Entry point, log and pid file settings
        readiness: Probe that must pass before Stage C succeeds
        existing_process: Policy when the application is already running
    """

    SUPPORTED_VERSIONS: ClassVar[frozenset[int]] = frozenset({PLAN_VERSION})

    version: int = Field(PLAN_VERSION, description="Plan schema version")
    transfer: TransferSpec = Field(default_factory=TransferSpec)
    bootstrap_commands: list[str] = Field(
        default_factory=lambda: list(DEFAULT_BOOTSTRAP_COMMANDS),
        description="Ordered remote command templates",
    )
    launch: LaunchSpec = Field(default_factory=LaunchSpec)
    readiness: ReadinessCheck = Field(default_factory=ReadinessCheck)
    existing_process: ExistingProcessPolicy = ExistingProcessPolicy.RESTART

    @field_validator("version")
    @classmethod
    def validate_version(cls, v: int) -> int:
        if v not in cls.SUPPORTED_VERSIONS:
            raise ValueError(
                f"unsupported plan version {v}; supported: {sorted(cls.SUPPORTED_VERSIONS)}"
            )
        return v

    @field_validator("bootstrap_commands")
    @classmethod
    def validate_commands(cls, v: list[str]) -> list[str]:
        cleaned = [cmd.strip() for cmd in v]
        if any(not cmd for cmd in cleaned):
            raise ValueError("bootstrap commands cannot be blank")
        return cleaned

    @model_validator(mode="after")
    def validate_entry_point_transferred(self) -> "DeploymentPlan":
        entry = self.launch.entry_point
        covered = any(
            entry == path or entry.startswith(f"{path}/") for path in self.transfer.paths
        )
        if not covered:
            raise ValueError(
                f"launch entry point {entry!r} is not part of the transfer list"
            )
        return self

    @classmethod
    def default(cls) -> "DeploymentPlan":
        return cls()

    @classmethod
    def from_file(cls, path: str | Path) -> "DeploymentPlan":
        """Load a plan from a JSON document."""
        with open(path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
        return cls.model_validate(data)


# =============================================================================
# Request
# =============================================================================


class TriggerSource(str, Enum):
    """How a deployment was requested. All are handled identically."""

    WEBHOOK = "webhook"
    MANUAL = "manual"
    POLL = "poll"


class DeploymentRequest(BaseModel):
    """
    Input contract for one deployment run.

    Supplied once at run start and immutable for the run's duration.
    """

    deployment_id: str = Field(default_factory=generate_deployment_id)
    target: DeployTarget
    source: SourceSpec
    plan: DeploymentPlan = Field(default_factory=DeploymentPlan)
    trigger: TriggerSource = TriggerSource.MANUAL
    requested_by: str | None = Field(None, description="User or sender login")
    requested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "target": {
                    "host": "203.0.113.10",
                    "user": "ubuntu",
                    "app_dir": "/home/ubuntu/app",
                    "credential_id": "deploy-server-key",
                },
                "source": {
                    "repo_url": "https://github.com/example/flask-app.git",
                    "branch": "main",
                },
                "trigger": "webhook",
            }
        },
    }
