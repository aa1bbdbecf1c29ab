"""
Configuration loader for brainvault.

Loads and merges configuration from multiple sources:
1. Default values
2. Global config (~/.brainvault/config.yaml)
3. Profile config (~/.brainvault/profiles/<name>.yaml)
4. Project config (./.brainvault/project.yaml)
5. Environment variables (BRAINVAULT_*)
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from brainvault.config.merger import deep_merge, get_nested_value, set_nested_value
from brainvault.config.schema import Config
from brainvault.storage.paths import (
    find_project_config,
    get_global_config_path,
    get_profile_path,
)

logger = logging.getLogger(__name__)

ENV_PREFIX = "BRAINVAULT_"

# Variables that are read elsewhere and never map onto config keys
_RESERVED_ENV = {"BRAINVAULT_HOME", "BRAINVAULT_PROFILE"}


class ConfigurationError(Exception):
    """Raised when configuration loading or validation fails."""

    pass


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        path: Path to the YAML file.

    Returns:
        Parsed configuration dictionary (empty if the file is missing).

    Raises:
        ConfigurationError: If the file cannot be read or parsed.
    """
    try:
        with open(path, encoding="utf-8") as f:
            content = yaml.safe_load(f)
            return content if content else {}
    except FileNotFoundError:
        return {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read {path}: {e}") from e


def apply_env_overrides(config: dict[str, Any]) -> dict[str, Any]:
    """
    Apply environment variable overrides to configuration.

    Environment variables follow the pattern BRAINVAULT_<SECTION>_<KEY>=<value>,
    where the first segment names the section and the remainder is the key,
    so BRAINVAULT_MEMORY_MAX_ACTIVE_TURNS sets memory.max_active_turns.

    Args:
        config: Configuration dictionary to modify.

    Returns:
        Configuration with environment overrides applied.
    """
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX) or key in _RESERVED_ENV:
            continue

        section, _, option = key[len(ENV_PREFIX) :].lower().partition("_")
        if not option:
            continue

        config = set_nested_value(config, f"{section}.{option}", _parse_env_value(value))

    return config


def _parse_env_value(value: str) -> Any:
    """
    Parse an environment variable value to the appropriate type.

    Args:
        value: String value from environment.

    Returns:
        Parsed value (bool, int, float, list or string).
    """
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False

    if re.match(r"^-?\d+$", value):
        return int(value)

    if re.match(r"^-?\d+\.\d+$", value):
        return float(value)

    if "," in value:
        return [item.strip() for item in value.split(",")]

    return value


def _file_layers(
    config_dict: dict[str, Any],
    profile: str | None,
    project_path: Path | None,
    skip_project: bool,
) -> list[Path]:
    """Config files to merge, lowest priority first. Missing files are skipped."""
    layers = [get_global_config_path()]

    # The global file may name a default profile
    if not profile and layers[0].exists():
        global_dict = deep_merge(config_dict, load_yaml_file(layers[0]))
        profile = get_nested_value(global_dict, "general.default_profile")
    if profile:
        layers.append(get_profile_path(profile))

    if not skip_project:
        project_file = find_project_config(project_path)
        if project_file:
            layers.append(project_file)

    return [path for path in layers if path.exists()]


def load_config(
    profile: str | None = None,
    project_path: Path | None = None,
    skip_project: bool = False,
    skip_env: bool = False,
) -> Config:
    """
    Load the merged configuration.

    Layers, later overriding earlier: schema defaults, the global file,
    the profile file (argument, BRAINVAULT_PROFILE, or
    general.default_profile), the nearest project file, then
    BRAINVAULT_* variables.

    Args:
        profile: Profile name to load.
        project_path: Directory to start the project config search from. Defaults to cwd.
        skip_project: Ignore project configuration.
        skip_env: Ignore environment overrides.

    Raises:
        ConfigurationError: If a file is unreadable or the merged result is invalid.
    """
    config_dict = Config().model_dump()
    profile = profile or os.environ.get("BRAINVAULT_PROFILE")

    for path in _file_layers(config_dict, profile, project_path, skip_project):
        logger.debug(f"Merging configuration from {path}")
        config_dict = deep_merge(config_dict, load_yaml_file(path))

    if not skip_env:
        config_dict = apply_env_overrides(config_dict)

    try:
        return Config.model_validate(config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Configuration validation failed: {e}") from e



# Singleton for cached config
_cached_config: Config | None = None


def get_config(reload: bool = False) -> Config:
    """
    Get the global configuration instance.

    Uses a cached instance. Use reload=True to force refresh.
    """
    global _cached_config

    if _cached_config is None or reload:
        _cached_config = load_config()

    return _cached_config


def clear_config_cache() -> None:
    """Clear the cached configuration."""
    global _cached_config
    _cached_config = None
