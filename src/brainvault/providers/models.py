"""
Provider data models for brainvault.

Request messages and per-call usage accounting for the summary model.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any


class MessageRole(str, Enum):
    """Roles accepted by chat-completion APIs."""

    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Message:
    """One chat message in a completion request."""

    role: str
    content: str
    name: str | None = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(MessageRole.SYSTEM.value, content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(MessageRole.USER.value, content)

    def to_dict(self) -> dict[str, Any]:
        """Render in the OpenAI message shape LiteLLM expects."""
        payload: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.name:
            payload["name"] = self.name
        return payload


@dataclass
class TokenUsage:
    """Tokens consumed by one completion, plus its estimated cost in USD.

    ``total_tokens`` is derived from input and output when the provider
    does not report it.
    """

    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    def __post_init__(self) -> None:
        if not self.total_tokens:
            self.total_tokens = self.input_tokens + self.output_tokens
