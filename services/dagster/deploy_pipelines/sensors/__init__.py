"""Dagster Sensors - Event-Driven Job Triggers."""

from .branch_sensor import branch_head_sensor
from .run_status_sensor import (
    deployment_run_failure_sensor,
    deployment_run_success_sensor,
)

__all__ = [
    "branch_head_sensor",
    "deployment_run_failure_sensor",
    "deployment_run_success_sensor",
]
