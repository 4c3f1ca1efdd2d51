"""SparkApplication spec building for sparkrunner.

A job spec starts from a reusable SparkApplication template (cluster and
image settings, driver and executor blocks, scheduler annotations) and is
completed with values known only at run time: the application name, the
entry point and its arguments, executor sizing and the gang-scheduling
budget derived from it.
"""

from __future__ import annotations

import copy
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import yaml

from sparkrunner._constants import (
    INITIAL_EXECUTORS_KEY,
    MAX_EXECUTORS_KEY,
    POD_NAME_PREFIX_KEY,
    TASK_GROUPS_ANNOTATION,
)
from sparkrunner.config.loader import ConfigValidationError, TemplateError
from sparkrunner.config.schema import (
    EngineSettings,
    EntryPointConfig,
    ExecutorSettings,
    RunnerConfig,
)

from .budget import executor_budget_gib
from .task_group import patch_task_groups

logger = logging.getLogger(__name__)

ARGS_DELIMITER = " "
MAX_NAME_LENGTH = 63

_RFC1123_SUBDOMAIN = re.compile(r"^[a-z0-9]([a-z0-9.-]*[a-z0-9])?$")


def normalize_name(name: str) -> str:
    """Lowercase a job name and turn underscores into dashes.

    ``_to_`` collapses to a single dash, so ``Occurrence_To_Verbatim``
    becomes ``occurrence-verbatim``.
    """
    return name.lower().replace("_to_", "-").replace("_", "-")


def validate_name(name: str) -> str:
    """Check that a normalised name is a valid RFC 1123 subdomain.

    Raises:
        ConfigValidationError: If the name is too long or has invalid characters
    """
    if len(name) > MAX_NAME_LENGTH:
        raise ConfigValidationError(
            f"Application name '{name}' is {len(name)} characters, max {MAX_NAME_LENGTH}"
        )
    if not _RFC1123_SUBDOMAIN.match(name):
        raise ConfigValidationError(
            f"Application name '{name}' must consist of lowercase alphanumerics, '-' or '.', "
            "and start and end with an alphanumeric character"
        )
    return name


class ArgsJoiner:
    """Ordered collector for entry-point arguments.

    Values are joined with spaces and split back on spaces when the spec is
    built, so a single value such as ``"--a=1 --b=2"`` yields two arguments.
    """

    def __init__(self, delimiter: str = ARGS_DELIMITER):
        self.delimiter = delimiter
        self._parts: list[str] = []

    def add(self, value: Any) -> ArgsJoiner:
        self._parts.append(str(value))
        return self

    def __len__(self) -> int:
        return len(self._parts)

    def __str__(self) -> str:
        return self.delimiter.join(self._parts)

    def split(self) -> list[str]:
        return [arg for arg in str(self).split(self.delimiter) if arg]


ArgsProvider = Callable[[ArgsJoiner], None]


def _mapping(parent: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    """Return a copy of an optional nested mapping, {} when absent or null.

    Raises:
        TemplateError: If the value is present but not a mapping
    """
    value = parent.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise TemplateError(f"Template {path} must be a mapping, got {type(value).__name__}")
    return dict(value)


@dataclass(frozen=True)
class JobSpec:
    """Immutable SparkApplication launch descriptor.

    Holds a private copy of the manifest; every accessor returns a copy.
    """

    _manifest: dict[str, Any] = field(repr=False, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_manifest", copy.deepcopy(self._manifest))

    @property
    def name(self) -> str:
        return self._manifest["metadata"]["name"]

    @property
    def namespace(self) -> str:
        return self._manifest["metadata"].get("namespace") or ""

    @property
    def main_class(self) -> str:
        return self._manifest["spec"]["mainClass"]

    @property
    def application_file(self) -> str:
        return self._manifest["spec"]["mainApplicationFile"]

    @property
    def args(self) -> list[str]:
        return list(self._manifest["spec"]["args"])

    @property
    def spark_conf(self) -> dict[str, Any]:
        return dict(self._manifest["spec"]["sparkConf"])

    @property
    def executor(self) -> dict[str, Any]:
        return copy.deepcopy(self._manifest["spec"]["executor"])

    @property
    def task_groups(self) -> str | None:
        """Raw task-groups annotation value, None if the template has none."""
        overrides = self._manifest["spec"]["executor"].get("podOverrides") or {}
        annotations = (overrides.get("metadata") or {}).get("annotations") or {}
        return annotations.get(TASK_GROUPS_ANNOTATION)

    def to_manifest(self) -> dict[str, Any]:
        """Return a mutable copy of the full manifest."""
        return copy.deepcopy(self._manifest)

    def to_yaml(self) -> str:
        return yaml.safe_dump(self._manifest, default_flow_style=False, sort_keys=False, indent=2)

    def __repr__(self) -> str:
        return f"JobSpec(name={self.name!r})"


class JobSpecBuilder:
    """Builds JobSpecs from a SparkApplication template.

    The builder never touches the network and never mutates the template;
    building twice from the same inputs gives equal specs.
    """

    def __init__(
        self,
        name: str,
        entry_point: EntryPointConfig,
        executor: ExecutorSettings,
        engine: EngineSettings | None = None,
        args_provider: ArgsProvider | None = None,
    ):
        """Initialize the builder.

        Args:
            name: Application name; normalised and validated here
            entry_point: Main class, artifact location and static arguments
            executor: Executor count and memory
            engine: Engine settings (sidecar memory), defaults when None
            args_provider: Callback adding run-specific arguments after the
                static ones

        Raises:
            ConfigValidationError: If the normalised name is not a valid
                Kubernetes resource name
        """
        self.name = validate_name(normalize_name(name))
        self.entry_point = entry_point
        self.executor = executor
        self.engine = engine or EngineSettings()
        self.args_provider = args_provider

    @classmethod
    def from_config(
        cls, cfg: RunnerConfig, args_provider: ArgsProvider | None = None
    ) -> JobSpecBuilder:
        """Create a builder from a loaded RunnerConfig."""
        return cls(
            name=cfg.name,
            entry_point=cfg.entry_point,
            executor=cfg.executor,
            engine=cfg.engine,
            args_provider=args_provider,
        )

    def build(self, template: dict[str, Any]) -> JobSpec:
        """Build a JobSpec from a template.

        Args:
            template: SparkApplication manifest; not modified

        Returns:
            JobSpec for this builder's settings

        Raises:
            TemplateError: If the template lacks spec or spec.executor
            TaskGroupError: If the task-groups annotation is malformed
            ConfigValidationError: If the memory overhead cannot be parsed
        """
        manifest = copy.deepcopy(template)

        spec = manifest.get("spec")
        if not isinstance(spec, dict):
            raise TemplateError("Template has no 'spec' mapping")
        if not isinstance(spec.get("executor"), dict):
            raise TemplateError("Template has no 'spec.executor' mapping")

        metadata = _mapping(manifest, "metadata", "metadata")
        metadata["name"] = self.name
        manifest["metadata"] = metadata

        spec["mainClass"] = self.entry_point.main_class
        spec["mainApplicationFile"] = self.entry_point.application_file
        spec["args"] = self._build_args()
        spec["sparkConf"] = self._merge_spark_conf(_mapping(spec, "sparkConf", "spec.sparkConf"))
        spec["executor"] = self._merge_executor(spec["executor"], spec["sparkConf"])

        job_spec = JobSpec(manifest)
        logger.debug("SparkApplication %s:\n%s", self.name, job_spec.to_yaml())
        return job_spec

    def _build_args(self) -> list[str]:
        joiner = ArgsJoiner()
        for arg in self.entry_point.args:
            joiner.add(arg)
        if self.args_provider is not None:
            self.args_provider(joiner)
        return joiner.split()

    def _merge_spark_conf(self, spark_conf: dict[str, Any]) -> dict[str, Any]:
        """Fill recognised Spark settings the template leaves unset."""
        merged = dict(spark_conf)
        count = str(self.executor.executor_count)
        merged.setdefault(MAX_EXECUTORS_KEY, count)
        merged.setdefault(INITIAL_EXECUTORS_KEY, count)
        merged.setdefault(POD_NAME_PREFIX_KEY, self.name)
        return merged

    def _merge_executor(
        self, executor: dict[str, Any], spark_conf: dict[str, Any]
    ) -> dict[str, Any]:
        """Apply replicas, task-group sizing and the memory limit to the executor."""
        executor = dict(executor)

        # Templates without a replica field leave sizing to dynamic allocation
        if executor.get("replicas") is not None:
            executor["replicas"] = self.executor.executor_count

        exec_config = _mapping(executor, "config", "spec.executor.config")
        resources = _mapping(exec_config, "resources", "spec.executor.config.resources")
        cpu = _mapping(resources, "cpu", "spec.executor.config.resources.cpu")

        pod_overrides = _mapping(executor, "podOverrides", "spec.executor.podOverrides")
        pod_metadata = _mapping(pod_overrides, "metadata", "spec.executor.podOverrides.metadata")
        if pod_metadata.get("annotations") is not None:
            annotations = _mapping(
                pod_metadata, "annotations", "spec.executor.podOverrides.metadata.annotations"
            )
            cpu_min = cpu.get("min")
            pod_metadata["annotations"] = patch_task_groups(
                annotations,
                min_member=self.executor.executor_count,
                memory_gib=executor_budget_gib(self.executor, self.engine, spark_conf),
                cpu=str(cpu_min) if cpu_min is not None else None,
            )
            pod_overrides["metadata"] = pod_metadata
            executor["podOverrides"] = pod_overrides

        memory = _mapping(resources, "memory", "spec.executor.config.resources.memory")
        memory["limit"] = f"{self.executor.executor_memory_gib}Gi"
        resources["memory"] = memory
        exec_config["resources"] = resources
        executor["config"] = exec_config

        return executor
