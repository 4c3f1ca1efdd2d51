"""Shared fixtures for sparkrunner test suite."""

from __future__ import annotations

import copy
import json
from typing import Any

import pytest
import yaml

from sparkrunner.config import (
    EngineSettings,
    EntryPointConfig,
    ExecutorSettings,
    JobPhase,
    RunnerConfig,
)
from sparkrunner.k8s import JobHandle, K8sApiError

TASK_GROUPS = [
    {
        "name": "spark-executor",
        "minMember": 1,
        "minResource": {"cpu": "500m", "memory": "1Gi"},
        "nodeSelector": {"pool": "spark"},
    }
]

TEMPLATE: dict[str, Any] = {
    "apiVersion": "spark.stackable.tech/v1alpha1",
    "kind": "SparkApplication",
    "metadata": {
        "name": "placeholder",
        "labels": {"app.kubernetes.io/managed-by": "sparkrunner"},
    },
    "spec": {
        "sparkImage": {"productVersion": "3.5.1"},
        "mode": "cluster",
        "mainClass": "placeholder",
        "mainApplicationFile": "placeholder",
        "sparkConf": {
            "spark.executor.memoryOverhead": "1024",
            "spark.dynamicAllocation.maxExecutors": "50",
        },
        "driver": {"config": {"resources": {"cpu": {"min": "1", "max": "2"}}}},
        "executor": {
            "replicas": 1,
            "config": {
                "resources": {
                    "cpu": {"min": "2", "max": "4"},
                    "memory": {"limit": "1Gi"},
                }
            },
            "podOverrides": {
                "metadata": {
                    "annotations": {
                        "yunikorn.apache.org/task-groups": json.dumps(TASK_GROUPS),
                        "yunikorn.apache.org/schedulingPolicyParameters": (
                            "gangSchedulingStyle=Hard"
                        ),
                    }
                }
            },
        },
    },
}


def make_template(**spec_overrides) -> dict[str, Any]:
    """Return a fresh copy of the test SparkApplication template."""
    template = copy.deepcopy(TEMPLATE)
    template["spec"].update(spec_overrides)
    return template


def make_config(**overrides) -> RunnerConfig:
    """Create a RunnerConfig with sensible defaults for testing."""
    base: dict = {
        "name": "occurrence_to_verbatim",
        "template": "spark-application.yaml",
        "entry_point": {
            "main_class": "org.example.pipelines.VerbatimPipeline",
            "application_file": "s3a://artifacts/pipelines.jar",
        },
        "executor": {"executor_count": 3, "executor_memory_gib": 8},
        "engine": {"sidecar_memory_mib": 512},
    }
    base.update(overrides)
    return RunnerConfig(**base)


def write_config(tmp_path, template: dict[str, Any] | None = None, **overrides):
    """Write a config and template pair under tmp_path; return the config path."""
    (tmp_path / "spark-application.yaml").write_text(
        yaml.safe_dump(template if template is not None else make_template())
    )
    data = make_config(**overrides).model_dump(mode="json")
    path = tmp_path / "sparkrunner.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


class FakeOrchestrator:
    """In-memory orchestrator replaying a scripted phase sequence."""

    def __init__(
        self,
        phases: list[JobPhase | Exception] | None = None,
        submit_error: Exception | None = None,
        delete_error: Exception | None = None,
    ):
        self.phases = list(phases or [JobPhase.SUCCEEDED])
        self.submit_error = submit_error
        self.delete_error = delete_error
        self.submitted: list[dict[str, Any]] = []
        self.phase_reads: list[str] = []
        self.deleted: list[str] = []

    def submit(self, manifest: dict[str, Any]) -> JobHandle:
        if self.submit_error is not None:
            raise self.submit_error
        self.submitted.append(manifest)
        return JobHandle(name=manifest["metadata"]["name"], namespace="test-ns")

    def get_phase(self, name: str) -> JobPhase:
        self.phase_reads.append(name)
        # Repeat the last phase once the script runs out
        phase = self.phases.pop(0) if len(self.phases) > 1 else self.phases[0]
        if isinstance(phase, Exception):
            raise phase
        return phase

    def delete(self, name: str) -> bool:
        self.deleted.append(name)
        if self.delete_error is not None:
            raise self.delete_error
        return True


@pytest.fixture
def template() -> dict[str, Any]:
    return make_template()


@pytest.fixture
def entry_point() -> EntryPointConfig:
    return EntryPointConfig(
        main_class="org.example.pipelines.VerbatimPipeline",
        application_file="s3a://artifacts/pipelines.jar",
    )


@pytest.fixture
def executor_settings() -> ExecutorSettings:
    return ExecutorSettings(executor_count=3, executor_memory_gib=8)


@pytest.fixture
def engine_settings() -> EngineSettings:
    return EngineSettings(sidecar_memory_mib=512)


@pytest.fixture
def api_error() -> K8sApiError:
    return K8sApiError(
        "Create SparkApplication failed: 422 Unprocessable Entity",
        status=422,
        reason="Unprocessable Entity",
        body='{"message": "spec.executor.replicas: Invalid value"}',
    )
