"""
Configuration merging for brainvault.

Layered config sources (global, profile, project, environment) are
plain dicts until the final merged result is validated.
"""

from typing import Any


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    Merge an override layer onto a base layer.

    Nested sections merge key by key, so a profile that only sets
    ``memory.max_tokens`` keeps every other memory setting. Any other value
    replaces the base value outright, and an explicit ``None`` (``null`` in
    YAML) drops the key so the schema default applies again.

    Neither input is modified.

    Examples:
        >>> deep_merge({"memory": {"max_tokens": 2000, "store": "json"}},
        ...            {"memory": {"max_tokens": 500}})
        {'memory': {'max_tokens': 500, 'store': 'json'}}
    """
    merged = dict(base)

    for key, value in override.items():
        current = merged.get(key)
        if value is None:
            merged.pop(key, None)
        elif isinstance(value, dict) and isinstance(current, dict):
            merged[key] = deep_merge(current, value)
        else:
            merged[key] = value

    return merged


def get_nested_value(config: dict[str, Any], key_path: str) -> Any:
    """Read a dotted key such as ``"general.default_profile"``; None if any part is missing."""
    node: Any = config
    for part in key_path.split("."):
        if not isinstance(node, dict) or part not in node:
            return None
        node = node[part]
    return node


def set_nested_value(config: dict[str, Any], key_path: str, value: Any) -> dict[str, Any]:
    """
    Write a dotted key in place, creating (or replacing non-dict) sections on the way.

    Returns:
        The same dict, for chaining.
    """
    *sections, leaf = key_path.split(".")
    node = config
    for section in sections:
        if not isinstance(node.get(section), dict):
            node[section] = {}
        node = node[section]
    node[leaf] = value
    return config
