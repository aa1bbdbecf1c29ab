"""
brainvault conversation memory.

Tiered memory: recent turns stay active, older turns are compacted into
summaries and archived with full provenance.

Usage:
    from brainvault.memory import get_memory_service

    service = get_memory_service()
    conversation_id = await service.get_or_create_conversation("room-1")
    await service.record_turn(conversation_id, "Hello!", "Hi there!")

    history = await service.format_history_for_prompt(conversation_id, max_tokens=1000)
"""

# Models
from brainvault.memory.models import (
    ActiveTier,
    ArchivedTier,
    Conversation,
    ConversationInfo,
    ConversationSummary,
    ConversationTurn,
    InterfaceType,
    MemoryOptions,
    NewConversation,
    SearchCriteria,
    SummaryProvenance,
    TieredHistory,
    TieredMemoryConfig,
    TurnFilter,
    TurnTier,
)

# Errors
from brainvault.memory.exceptions import (
    ConversationMemoryError,
    NotFoundError,
    StoreError,
    SummarizationError,
    ValidationError,
)

# Token estimation
from brainvault.memory.context import TokenCounter

# Storage
from brainvault.memory.storage import (
    ConversationStore,
    InMemoryConversationStore,
    JsonFileConversationStore,
)

# Summarizer
from brainvault.memory.summarizer import ConversationSummarizer, SummaryOutput

# Manager
from brainvault.memory.manager import CompactionResult, TieredMemoryManager

# Service
from brainvault.memory.service import (
    ConversationMemoryService,
    build_store,
    get_memory_service,
    reset_memory_service,
)

__all__ = [
    # Models
    "ActiveTier",
    "ArchivedTier",
    "Conversation",
    "ConversationInfo",
    "ConversationSummary",
    "ConversationTurn",
    "InterfaceType",
    "MemoryOptions",
    "NewConversation",
    "SearchCriteria",
    "SummaryProvenance",
    "TieredHistory",
    "TieredMemoryConfig",
    "TurnFilter",
    "TurnTier",
    # Errors
    "ConversationMemoryError",
    "NotFoundError",
    "StoreError",
    "SummarizationError",
    "ValidationError",
    # Context
    "TokenCounter",
    # Storage
    "ConversationStore",
    "InMemoryConversationStore",
    "JsonFileConversationStore",
    # Summarizer
    "ConversationSummarizer",
    "SummaryOutput",
    # Manager
    "CompactionResult",
    "TieredMemoryManager",
    # Service
    "ConversationMemoryService",
    "build_store",
    "get_memory_service",
    "reset_memory_service",
]
