"""
Token estimation for brainvault.

Prompt assembly only needs an approximate size; exact counts are
available through tiktoken when configured.
"""

import math
from typing import Literal

import tiktoken

CHARS_PER_TOKEN = 4

TokenEstimator = Literal["approximate", "tiktoken"]


class TokenCounter:
    """Counts tokens for text.

    The ``approximate`` mode uses roughly four characters per token.
    The ``tiktoken`` mode encodes the text with a tiktoken encoding.
    """

    def __init__(self, mode: TokenEstimator = "approximate", encoding: str = "cl100k_base"):
        """Initialize the token counter.

        Args:
            mode: Estimation strategy.
            encoding: Tiktoken encoding name (tiktoken mode only).
        """
        if mode not in ("approximate", "tiktoken"):
            raise ValueError(f"Unknown token estimator: {mode}")
        self.mode = mode
        self._encoding = tiktoken.get_encoding(encoding) if mode == "tiktoken" else None

    def count(self, text: str) -> int:
        """Count tokens in text.

        Args:
            text: Text to count.

        Returns:
            Token count (0 for empty text).
        """
        if not text:
            return 0
        if self._encoding is not None:
            return len(self._encoding.encode(text))
        return math.ceil(len(text) / CHARS_PER_TOKEN)

    def fits(self, text: str, budget: int) -> bool:
        """Check whether text fits within a token budget."""
        return self.count(text) <= budget
