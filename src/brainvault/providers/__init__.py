"""
brainvault provider layer.

Language-model access via LiteLLM, used by the conversation summarizer.
"""

from brainvault.providers.exceptions import (
    AuthenticationError,
    ContextLengthExceededError,
    FailureType,
    InvalidRequestError,
    InvalidResponseError,
    NetworkError,
    ProviderError,
    RateLimitError,
    ServerError,
    classify_error,
    to_provider_error,
)
from brainvault.providers.manager import ProviderManager
from brainvault.providers.models import Message, MessageRole, TokenUsage
from brainvault.providers.protocol import LanguageModel

__all__ = [
    # Protocol
    "LanguageModel",
    "ProviderManager",
    # Models
    "Message",
    "MessageRole",
    "TokenUsage",
    # Exceptions
    "AuthenticationError",
    "ContextLengthExceededError",
    "FailureType",
    "InvalidRequestError",
    "InvalidResponseError",
    "NetworkError",
    "ProviderError",
    "RateLimitError",
    "ServerError",
    "classify_error",
    "to_provider_error",
]
