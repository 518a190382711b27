"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import CaptureConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    Args:
        text: Text containing ${VAR_NAME} patterns

    Returns:
        Text with environment variables substituted

    Raises:
        ValueError: If a referenced environment variable is not found
    """

    def replacer(match: re.Match[str]) -> str:
        var_name = match.group(1)
        value = os.environ.get(var_name)
        if value is None:
            raise ValueError(f"Environment variable {var_name} not found")
        return value

    return re.sub(r"\$\{([^}]+)\}", replacer, text)


def load_config(path: Path) -> CaptureConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    An empty file yields the default configuration.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated CaptureConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open(encoding="utf-8") as f:
        raw_yaml = f.read()

    yaml_with_env = substitute_env_vars(raw_yaml)

    config_dict = yaml.safe_load(yaml_with_env) or {}
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")

    config = CaptureConfig.model_validate(config_dict)

    validate_config(config)

    return config


def validate_config(config: CaptureConfig) -> None:
    """
    Perform additional cross-field validation.

    Args:
        config: Configuration to validate

    Raises:
        ValueError: If sections contradict each other
    """
    frames = config.frames

    overlap = set(frames.main_modules) & set(frames.excluded_modules)
    if overlap:
        raise ValueError(f"Main modules cannot also be excluded: {sorted(overlap)}")

    if frames.generated_name_marker in "".join(frames.vendor_markers):
        raise ValueError("Generated name marker cannot appear in vendor markers")
