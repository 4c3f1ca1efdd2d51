"""Pydantic models for sparkrunner configuration.

A runner config names the SparkApplication template to start from and the
runtime settings that are layered on top of it when the job spec is built.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator

from sparkrunner._constants import DEFAULT_POLL_INTERVAL_MS

# =============================================================================
# Enums
# =============================================================================


class JobPhase(str, Enum):
    """Phase of a SparkApplication as reported by the operator.

    Values are the strings the operator writes to ``status.phase``.
    """

    SUBMITTED = "Submitted"
    PENDING = "Pending"
    RUNNING = "Running"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value: str | None) -> JobPhase:
        """Map a reported phase string to a JobPhase.

        Missing and unrecognised values map to UNKNOWN so that an
        unexpected operator phase keeps the job in the polling loop.
        """
        if not value:
            return cls.UNKNOWN
        try:
            return cls(value)
        except ValueError:
            pass
        for phase in cls:
            if phase.value.lower() == value.lower():
                return phase
        return cls.UNKNOWN


DEFAULT_TERMINAL_PHASES = frozenset({JobPhase.SUCCEEDED, JobPhase.FAILED})


# =============================================================================
# Settings
# =============================================================================


class KubernetesConfig(BaseModel):
    """Kubernetes connection and namespace configuration."""

    kubeconfig: str = ""  # Empty = in-cluster, then default kubeconfig
    context: str = ""  # Empty = use current context
    namespace: str = ""  # Empty = template namespace, then context namespace


class EntryPointConfig(BaseModel):
    """Application artifact and main class for the Spark job."""

    main_class: str = Field(min_length=1)
    application_file: str = Field(min_length=1, description="Artifact location, e.g. a jar URI")
    args: list[str] = Field(default_factory=list)


class ExecutorSettings(BaseModel):
    """Executor sizing supplied per run."""

    model_config = ConfigDict(frozen=True)

    executor_count: int = Field(gt=0)
    executor_memory_gib: int = Field(gt=0)


class EngineSettings(BaseModel):
    """Per-deployment settings of the execution engine."""

    model_config = ConfigDict(frozen=True)

    # Memory used by the sidecar container next to each executor
    sidecar_memory_mib: int = Field(default=0, ge=0)


class LifecycleConfig(BaseModel):
    """Submission and supervision settings."""

    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)
    delete_on_finish: bool = False
    terminal_phases: list[JobPhase] = Field(
        default_factory=lambda: [JobPhase.SUCCEEDED, JobPhase.FAILED]
    )

    @field_validator("terminal_phases")
    @classmethod
    def validate_terminal_phases(cls, v: list[JobPhase]) -> list[JobPhase]:
        """Ensure both Succeeded and Failed end the wait."""
        missing = DEFAULT_TERMINAL_PHASES - set(v)
        if missing:
            names = ", ".join(sorted(p.value for p in missing))
            raise ValueError(f"terminal_phases must include {names}")
        return v


# =============================================================================
# Root Configuration
# =============================================================================


class RunnerConfig(BaseModel):
    """Root configuration for one Spark application run."""

    name: str = Field(min_length=1, description="Application name, normalised before use")
    template: str = Field(min_length=1, description="Path to the SparkApplication template")

    kubernetes: KubernetesConfig = Field(default_factory=KubernetesConfig)
    entry_point: EntryPointConfig
    executor: ExecutorSettings
    engine: EngineSettings = Field(default_factory=EngineSettings)
    lifecycle: LifecycleConfig = Field(default_factory=LifecycleConfig)
