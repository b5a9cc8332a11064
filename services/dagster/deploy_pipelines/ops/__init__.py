"""Dagster Ops - Deployment stages."""

from .common_ops import init_deployment_op
from .fetch_op import fetch_source
from .transfer_op import transfer_artifacts
from .launch_op import bootstrap_and_launch

__all__ = [
    "init_deployment_op",
    "fetch_source",
    "transfer_artifacts",
    "bootstrap_and_launch",
]
