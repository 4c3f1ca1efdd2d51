"""sparkrunner configuration module."""

from .loader import (
    ConfigError,
    ConfigFileNotFoundError,
    ConfigParseError,
    ConfigValidationError,
    TemplateError,
    load_config,
    load_template,
)
from .schema import (
    DEFAULT_TERMINAL_PHASES,
    EngineSettings,
    EntryPointConfig,
    ExecutorSettings,
    JobPhase,
    KubernetesConfig,
    LifecycleConfig,
    RunnerConfig,
)

__all__ = [
    # Config classes
    "RunnerConfig",
    "KubernetesConfig",
    "EntryPointConfig",
    "ExecutorSettings",
    "EngineSettings",
    "LifecycleConfig",
    # Enums
    "JobPhase",
    "DEFAULT_TERMINAL_PHASES",
    # Loader functions
    "load_config",
    "load_template",
    # Exceptions
    "ConfigError",
    "ConfigFileNotFoundError",
    "ConfigParseError",
    "ConfigValidationError",
    "TemplateError",
]
