"""
Provider exceptions for brainvault.

Defines custom exceptions for language-model provider errors.
"""

from enum import Enum


class FailureType(Enum):
    """Classification of provider failures."""

    RATE_LIMIT = "rate_limit"
    AUTH_ERROR = "auth_error"
    NETWORK_ERROR = "network_error"
    SERVER_ERROR = "server_error"
    CONTEXT_LENGTH = "context_length"
    INVALID_REQUEST = "invalid_request"
    INVALID_RESPONSE = "invalid_response"
    UNKNOWN = "unknown"


class ProviderError(Exception):
    """Base exception for provider errors."""

    def __init__(self, message: str, provider: str | None = None):
        super().__init__(message)
        self.provider = provider


class AuthenticationError(ProviderError):
    """API key invalid or missing."""

    pass


class RateLimitError(ProviderError):
    """Provider rate limit exceeded."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: int | None = None,
    ):
        super().__init__(message, provider)
        self.retry_after = retry_after


class ContextLengthExceededError(ProviderError):
    """Request exceeded the model's context length."""

    pass


class NetworkError(ProviderError):
    """Network-related error (connection, timeout, etc.)."""

    pass


class ServerError(ProviderError):
    """Provider server error (5xx status codes)."""

    pass


class InvalidRequestError(ProviderError):
    """Invalid request sent to provider."""

    pass


class InvalidResponseError(ProviderError):
    """Provider returned output that does not match the requested schema."""

    pass


def classify_error(error: Exception) -> FailureType:
    """
    Classify an exception into a failure type.

    Args:
        error: The exception to classify.

    Returns:
        The failure type classification.
    """
    from litellm.exceptions import (
        APIConnectionError,
        APIError,
        AuthenticationError as LiteLLMAuthError,
        ContextWindowExceededError,
        RateLimitError as LiteLLMRateLimitError,
        ServiceUnavailableError,
        Timeout,
    )

    if isinstance(error, LiteLLMRateLimitError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, LiteLLMAuthError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ContextWindowExceededError):
        return FailureType.CONTEXT_LENGTH
    elif isinstance(error, (APIConnectionError, ServiceUnavailableError, Timeout)):
        return FailureType.NETWORK_ERROR
    elif isinstance(error, APIError):
        status = getattr(error, "status_code", None)
        if status and 500 <= status < 600:
            return FailureType.SERVER_ERROR
        elif status and 400 <= status < 500:
            return FailureType.INVALID_REQUEST
        return FailureType.UNKNOWN

    if isinstance(error, RateLimitError):
        return FailureType.RATE_LIMIT
    elif isinstance(error, AuthenticationError):
        return FailureType.AUTH_ERROR
    elif isinstance(error, ContextLengthExceededError):
        return FailureType.CONTEXT_LENGTH
    elif isinstance(error, (NetworkError, TimeoutError)):
        return FailureType.NETWORK_ERROR
    elif isinstance(error, ServerError):
        return FailureType.SERVER_ERROR
    elif isinstance(error, InvalidRequestError):
        return FailureType.INVALID_REQUEST
    elif isinstance(error, InvalidResponseError):
        return FailureType.INVALID_RESPONSE

    return FailureType.UNKNOWN


_ERROR_TYPES: dict[FailureType, type[ProviderError]] = {
    FailureType.RATE_LIMIT: RateLimitError,
    FailureType.AUTH_ERROR: AuthenticationError,
    FailureType.NETWORK_ERROR: NetworkError,
    FailureType.SERVER_ERROR: ServerError,
    FailureType.CONTEXT_LENGTH: ContextLengthExceededError,
    FailureType.INVALID_REQUEST: InvalidRequestError,
    FailureType.INVALID_RESPONSE: InvalidResponseError,
}


def to_provider_error(error: Exception, provider: str | None = None) -> ProviderError:
    """
    Wrap an arbitrary exception in the matching ProviderError subclass.

    Args:
        error: The exception raised by the provider call.
        provider: Provider name for context.

    Returns:
        A ProviderError (the error itself if it already is one).
    """
    if isinstance(error, ProviderError):
        return error
    error_type = _ERROR_TYPES.get(classify_error(error), ProviderError)
    return error_type(str(error) or type(error).__name__, provider)
