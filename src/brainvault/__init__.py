"""
brainvault - Tiered conversation memory for a personal assistant

Keeps chat history bounded by compacting older turns into summaries
with full provenance, and assembles token-budgeted history for prompts.
"""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("brainvault")
except PackageNotFoundError:
    __version__ = "0.4.0"

__all__ = [
    "__version__",
]
