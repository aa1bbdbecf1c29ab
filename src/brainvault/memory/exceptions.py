"""
Memory exceptions for brainvault.

Every error raised by the memory subsystem derives from
ConversationMemoryError so callers can catch the whole family.
"""


class ConversationMemoryError(Exception):
    """Base exception for conversation memory errors."""

    pass


class ValidationError(ConversationMemoryError):
    """Invalid configuration or input (bad turn, bad summarizer slice)."""

    pass


class NotFoundError(ConversationMemoryError):
    """A conversation, turn or summary that must exist does not."""

    def __init__(self, message: str, conversation_id: str | None = None):
        super().__init__(message)
        self.conversation_id = conversation_id


class SummarizationError(ConversationMemoryError):
    """Summarizing a slice of turns or persisting the result failed."""

    def __init__(self, message: str, conversation_id: str | None = None):
        super().__init__(message)
        self.conversation_id = conversation_id


class StoreError(ConversationMemoryError):
    """The storage backend failed on a read or write."""

    pass
