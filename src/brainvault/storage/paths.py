"""
Filesystem locations used by brainvault.

Everything lives under one home directory, ``$BRAINVAULT_HOME`` when set
and ``~/.brainvault`` otherwise:

    config.yaml             global configuration layer
    profiles/<name>.yaml    named profile layers
    memory/                 conversation store files

Project configuration sits outside the home, in ``.brainvault/project.yaml``
of the working tree or one of its parents.
"""

import os
from pathlib import Path

HOME_ENV_VAR = "BRAINVAULT_HOME"
PROJECT_CONFIG = Path(".brainvault") / "project.yaml"


def get_brainvault_home() -> Path:
    """Home directory; ``$BRAINVAULT_HOME`` overrides ``~/.brainvault``."""
    override = os.environ.get(HOME_ENV_VAR)
    if override:
        return Path(override).expanduser().resolve()
    return Path.home() / ".brainvault"


def get_global_config_path() -> Path:
    """Global configuration layer, read before profiles and projects."""
    return get_brainvault_home() / "config.yaml"


def get_profile_path(profile_name: str) -> Path:
    """Configuration layer for a named profile."""
    return get_brainvault_home() / "profiles" / f"{profile_name}.yaml"


def get_memory_dir() -> Path:
    """Root directory for persisted conversations."""
    return get_brainvault_home() / "memory"


def find_project_config(start_path: Path | None = None) -> Path | None:
    """Locate the nearest project configuration file.

    Checks ``start_path`` (default: the working directory) and then each
    parent up to and including the filesystem root.

    Returns:
        The first ``.brainvault/project.yaml`` found, or None.
    """
    origin = Path.cwd() if start_path is None else Path(start_path).resolve()

    for directory in (origin, *origin.parents):
        candidate = directory / PROJECT_CONFIG
        if candidate.exists():
            return candidate
    return None


def expand_path(path: str | Path) -> Path:
    """Resolve a configured path, expanding ``~`` and ``$VARS`` in strings."""
    if isinstance(path, str):
        path = os.path.expanduser(os.path.expandvars(path))
    return Path(path).resolve()
