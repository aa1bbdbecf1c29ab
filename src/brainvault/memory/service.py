"""
Conversation memory service for brainvault.

The narrow surface that chat handlers and the tool/resource layer use;
callers never touch the store or summarizer directly.
"""

import logging
from typing import Any

from brainvault.config import Config, MemoryConfig, get_config
from brainvault.memory.context import TokenCounter
from brainvault.memory.manager import TieredMemoryManager
from brainvault.memory.models import (
    ConversationInfo,
    ConversationSummary,
    ConversationTurn,
    InterfaceType,
    MemoryOptions,
    NewConversation,
    SearchCriteria,
    TieredHistory,
    TieredMemoryConfig,
    TurnFilter,
)
from brainvault.memory.storage import (
    ConversationStore,
    InMemoryConversationStore,
    JsonFileConversationStore,
)
from brainvault.memory.summarizer import ConversationSummarizer
from brainvault.providers import LanguageModel, ProviderManager

logger = logging.getLogger(__name__)


def build_store(config: MemoryConfig) -> ConversationStore:
    """Create the conversation store selected by configuration."""
    if config.store == "json":
        return JsonFileConversationStore(config.store_path)
    return InMemoryConversationStore()


class ConversationMemoryService:
    """Facade over the tiered memory manager.

    Usage:
        service = ConversationMemoryService.from_config()
        conversation_id = await service.get_or_create_conversation("!room:example.org", "matrix")
        await service.record_turn(conversation_id, "What did we decide?", "To ship on Friday.")
        prompt_history = await service.format_history_for_prompt(conversation_id)
    """

    def __init__(self, manager: TieredMemoryManager, options: MemoryOptions | None = None):
        """Initialize the service.

        Args:
            manager: Tiered memory manager doing the work.
            options: Attribution defaults for record_turn.
        """
        self.manager = manager
        self.options = options or manager.options

    @classmethod
    def from_config(
        cls,
        config: Config | None = None,
        llm: LanguageModel | None = None,
        store: ConversationStore | None = None,
    ) -> "ConversationMemoryService":
        """Build the full memory stack from configuration.

        Args:
            config: Configuration to use. Loads the global config if omitted.
            llm: Language model for summaries. Defaults to a LiteLLM ProviderManager.
            store: Conversation store. Defaults to the configured backend.
        """
        config = config or get_config()
        memory = config.memory

        if llm is None:
            llm = ProviderManager(
                config.providers,
                model=config.get_summary_model(),
                max_tokens=memory.summary_max_tokens,
                timeout=memory.summary_timeout,
            )

        options = MemoryOptions(
            default_user_id=memory.default_user_id,
            default_user_name=memory.default_user_name,
            anchor_id=memory.anchor_id,
            anchor_name=memory.anchor_name,
        )
        manager = TieredMemoryManager(
            store=store or build_store(memory),
            summarizer=ConversationSummarizer(llm, options=options),
            config=TieredMemoryConfig(
                max_active_turns=memory.max_active_turns,
                summary_turn_count=memory.summary_turn_count,
                max_tokens=memory.max_tokens,
            ),
            options=options,
            token_counter=TokenCounter(memory.token_estimator),
        )
        return cls(manager, options)

    @property
    def store(self) -> ConversationStore:
        """The underlying conversation store."""
        return self.manager.store

    # =========================================================================
    # Conversations
    # =========================================================================

    async def start_conversation(
        self,
        room_id: str,
        interface_type: InterfaceType | str = InterfaceType.CLI,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Create a new conversation for a room and return its ID."""
        return await self.store.create_conversation(
            NewConversation(
                interface_type=interface_type,
                room_id=room_id,
                metadata=metadata or {},
            )
        )

    async def get_or_create_conversation(
        self,
        room_id: str,
        interface_type: InterfaceType | str = InterfaceType.CLI,
    ) -> str:
        """Get the conversation bound to a room, creating it on first contact."""
        existing = await self.store.get_conversation_by_room(room_id, interface_type)
        if existing:
            return existing
        return await self.start_conversation(room_id, interface_type)

    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        """Merge metadata into a conversation."""
        return await self.store.update_metadata(conversation_id, metadata)

    async def get_recent_conversations(
        self,
        limit: int | None = None,
        interface_type: InterfaceType | str | None = None,
    ) -> list[ConversationInfo]:
        """List the most recently updated conversations."""
        return await self.store.get_recent_conversations(limit, interface_type)

    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        """Find conversations by interface, room, date range or text."""
        return await self.store.find_conversations(criteria)

    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation with its turns and summaries.

        Returns:
            False if the conversation did not exist.
        """
        return await self.store.delete_conversation(conversation_id)

    # =========================================================================
    # Turns and tiers
    # =========================================================================

    async def add_turn(self, conversation_id: str, turn: ConversationTurn | dict[str, Any]) -> str:
        """Add a turn and run the compaction check."""
        return await self.manager.add_turn(conversation_id, turn)

    async def record_turn(
        self,
        conversation_id: str,
        query: str,
        response: str,
        user_id: str | None = None,
        user_name: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> str:
        """Add a query/response exchange, filling in default user attribution."""
        return await self.add_turn(
            conversation_id,
            {
                "query": query,
                "response": response,
                "user_id": user_id or self.options.default_user_id,
                "user_name": user_name or self.options.default_user_name,
                "metadata": metadata or {},
            },
        )

    async def get_turns(
        self,
        conversation_id: str,
        turn_filter: TurnFilter | None = None,
    ) -> list[ConversationTurn]:
        """Get turns in chronological order."""
        return await self.manager.get_turns(conversation_id, turn_filter)

    async def get_summaries(self, conversation_id: str) -> list[ConversationSummary]:
        """Get summaries in creation order."""
        return await self.manager.get_summaries(conversation_id)

    async def check_and_summarize(self, conversation_id: str) -> bool:
        """Compact if the active tier is over its limit."""
        return await self.manager.check_and_summarize(conversation_id)

    async def force_summarize(self, conversation_id: str) -> bool:
        """Compact the oldest active turns now."""
        return await self.manager.force_summarize(conversation_id)

    async def get_tiered_history(self, conversation_id: str) -> TieredHistory:
        """Get active turns, summaries and archived turns."""
        return await self.manager.get_tiered_history(conversation_id)

    async def format_history_for_prompt(
        self,
        conversation_id: str,
        max_tokens: int | None = None,
    ) -> str:
        """Render token-budgeted history for a prompt."""
        return await self.manager.format_history_for_prompt(conversation_id, max_tokens)

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self) -> TieredMemoryConfig:
        """Get the tiered memory configuration."""
        return self.manager.get_config()

    def set_config(
        self,
        partial: TieredMemoryConfig | dict[str, Any] | None = None,
        **updates: Any,
    ) -> TieredMemoryConfig:
        """Merge-update the tiered memory configuration."""
        return self.manager.set_config(partial, **updates)


# Singleton instance, for wiring at application start
_service: ConversationMemoryService | None = None


def get_memory_service(config: Config | None = None) -> ConversationMemoryService:
    """Get the process-wide memory service, creating it on first use."""
    global _service
    if _service is None:
        _service = ConversationMemoryService.from_config(config)
        logger.debug("Conversation memory service created")
    return _service


def reset_memory_service() -> None:
    """Reset the memory service singleton."""
    global _service
    _service = None
