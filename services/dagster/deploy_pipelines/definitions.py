"""Dagster Definitions - Repository Configuration.

Defines jobs, resources, and sensors for the SSH Deployment Pipeline.
"""

import os

from dagster import Definitions, EnvVar

from .jobs import deploy_job
from .resources import EnvCredentialResource, GitResource, MongoDBResource, SSHResource
from .sensors import (
    branch_head_sensor,
    deployment_run_failure_sensor,
    deployment_run_success_sensor,
)


# =============================================================================
# Definitions
# =============================================================================

defs = Definitions(
    jobs=[
        deploy_job,
    ],
    resources={
        "git": GitResource(
            workspace_root=os.getenv("DEPLOY_WORKSPACE_ROOT", "/tmp/deploy-workspace"),
        ),
        "ssh": SSHResource(
            connect_timeout=float(os.getenv("DEPLOY_SSH_CONNECT_TIMEOUT", "10")),
            known_hosts_file=os.getenv("DEPLOY_SSH_KNOWN_HOSTS", ""),
            strict_host_key_checking=os.getenv("DEPLOY_SSH_STRICT_HOST_KEYS", "false").strip().lower()
            in {"1", "true", "yes"},
        ),
        "credentials": EnvCredentialResource(
            prefix=os.getenv("DEPLOY_CRED_PREFIX", "DEPLOY_CRED_"),
        ),
        "mongodb": MongoDBResource(
            connection_string=EnvVar("MONGO_CONNECTION_STRING"),
            database=os.getenv("MONGO_DATABASE", "deployments"),
        ),
    },
    schedules=[],
    sensors=[
        branch_head_sensor,  # SCM polling: routes to deploy_job (stopped by default)
        deployment_run_failure_sensor,  # Lifecycle: updates ledger on failure
        deployment_run_success_sensor,  # Lifecycle: updates ledger on success
    ],
)
