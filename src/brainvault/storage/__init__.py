"""Storage path utilities for brainvault."""

from brainvault.storage.paths import (
    expand_path,
    find_project_config,
    get_brainvault_home,
    get_global_config_path,
    get_memory_dir,
    get_profile_path,
)

__all__ = [
    "expand_path",
    "find_project_config",
    "get_brainvault_home",
    "get_global_config_path",
    "get_memory_dir",
    "get_profile_path",
]
