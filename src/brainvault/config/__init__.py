"""
brainvault configuration.

Pydantic schema plus a loader that merges YAML files and
BRAINVAULT_* environment variables.
"""

from brainvault.config.loader import (
    ConfigurationError,
    apply_env_overrides,
    clear_config_cache,
    get_config,
    load_config,
    load_yaml_file,
)
from brainvault.config.merger import (
    deep_merge,
    get_nested_value,
    set_nested_value,
)
from brainvault.config.schema import (
    Config,
    GeneralConfig,
    MemoryConfig,
    ProviderConfig,
)

__all__ = [
    "Config",
    "ConfigurationError",
    "GeneralConfig",
    "MemoryConfig",
    "ProviderConfig",
    "apply_env_overrides",
    "clear_config_cache",
    "deep_merge",
    "get_config",
    "get_nested_value",
    "load_config",
    "load_yaml_file",
    "set_nested_value",
]
