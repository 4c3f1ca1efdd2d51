"""Spark module for sparkrunner.

Builds SparkApplication specs and supervises their lifecycle.
"""

from .budget import compute_budget_gib, executor_budget_gib, memory_overhead_mib
from .controller import (
    ControllerError,
    ControllerState,
    ControllerStateError,
    JobLifecycleController,
    Orchestrator,
    PhaseQueryError,
    SubmissionError,
)
from .spec import ArgsJoiner, JobSpec, JobSpecBuilder, normalize_name, validate_name
from .task_group import TaskGroupError, patch_task_groups

__all__ = [
    # Budget
    "compute_budget_gib",
    "executor_budget_gib",
    "memory_overhead_mib",
    # Task groups
    "patch_task_groups",
    "TaskGroupError",
    # Spec
    "ArgsJoiner",
    "JobSpec",
    "JobSpecBuilder",
    "normalize_name",
    "validate_name",
    # Lifecycle
    "JobLifecycleController",
    "ControllerState",
    "Orchestrator",
    "ControllerError",
    "SubmissionError",
    "PhaseQueryError",
    "ControllerStateError",
]
