"""Configuration and template loader for sparkrunner."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .schema import RunnerConfig


class ConfigError(Exception):
    """Base exception for configuration errors."""

    pass


class ConfigFileNotFoundError(ConfigError):
    """Raised when a configuration or template file is not found."""

    pass


class ConfigParseError(ConfigError):
    """Raised when a configuration or template file cannot be parsed."""

    pass


class ConfigValidationError(ConfigError):
    """Raised when configuration validation fails."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None):
        super().__init__(message)
        self.errors = errors or []


class TemplateError(ConfigError):
    """Raised when a SparkApplication template has an unusable shape."""

    pass


def load_yaml(path: Path) -> dict[str, Any]:
    """Load YAML file and return as dictionary.

    Args:
        path: Path to YAML file

    Returns:
        Dictionary containing parsed YAML

    Raises:
        ConfigFileNotFoundError: If file doesn't exist
        ConfigParseError: If YAML parsing fails or the document is not a mapping
    """
    if not path.exists():
        raise ConfigFileNotFoundError(f"File not found: {path}")

    try:
        with open(path) as f:
            content = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigParseError(f"Failed to parse YAML in {path}: {e}") from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigParseError(f"Expected a mapping at the top of {path}")
    return content


def load_config(path: str | Path) -> RunnerConfig:
    """Load and validate runner configuration from file.

    A relative ``template`` path is resolved against the directory of the
    config file.

    Args:
        path: Path to configuration YAML file

    Returns:
        Validated RunnerConfig object

    Raises:
        ConfigFileNotFoundError: If file doesn't exist
        ConfigParseError: If YAML parsing fails
        ConfigValidationError: If validation fails
    """
    path = Path(path)
    data = load_yaml(path)

    try:
        cfg = RunnerConfig.model_validate(data)
    except ValidationError as e:
        errors = e.errors()
        error_messages = []
        for err in errors:
            loc = ".".join(str(x) for x in err["loc"])
            msg = err["msg"]
            error_messages.append(f"  - {loc}: {msg}")

        raise ConfigValidationError(
            "Configuration validation failed:\n" + "\n".join(error_messages),
            errors=[dict(e) for e in errors],  # type: ignore[call-overload]
        ) from e

    template = Path(cfg.template)
    if not template.is_absolute():
        cfg.template = str(path.parent / template)
    return cfg


def load_template(path: str | Path) -> dict[str, Any]:
    """Load a SparkApplication template.

    Args:
        path: Path to the template YAML file

    Returns:
        Template manifest dict

    Raises:
        ConfigFileNotFoundError: If file doesn't exist
        ConfigParseError: If YAML parsing fails
        TemplateError: If the template lacks a spec mapping
    """
    manifest = load_yaml(Path(path))
    if not isinstance(manifest.get("spec"), dict):
        raise TemplateError(f"Template {path} has no 'spec' mapping")
    return manifest
