"""Dagster Jobs - Executable Workflows."""

from .deploy_job import deploy_job

__all__ = ["deploy_job"]
