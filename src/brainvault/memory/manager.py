"""
Tiered memory manager for brainvault.

Owns the compaction policy (summarize the oldest active turns once the
active tier grows past its limit), keeps tier state consistent with
summary provenance, and assembles token-budgeted history for prompts.
"""

import asyncio
import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Any

from brainvault.memory.context import TokenCounter
from brainvault.memory.exceptions import (
    ConversationMemoryError,
    NotFoundError,
    SummarizationError,
)
from brainvault.memory.models import (
    ConversationSummary,
    ConversationTurn,
    MemoryOptions,
    TieredHistory,
    TieredMemoryConfig,
    TurnFilter,
    parse_model,
)
from brainvault.memory.storage import ConversationStore
from brainvault.memory.summarizer import ConversationSummarizer, format_turn

logger = logging.getLogger(__name__)

SUMMARIES_HEADER = "CONVERSATION SUMMARIES:"
RECENT_HEADER = "RECENT CONVERSATION:"


def _as_summarization_error(error: Exception, conversation_id: str) -> SummarizationError:
    if isinstance(error, SummarizationError):
        return error
    wrapped = SummarizationError(str(error) or type(error).__name__, conversation_id)
    wrapped.__cause__ = error
    return wrapped


@dataclass
class CompactionResult:
    """Outcome of one compaction attempt.

    Callers may inspect it; nothing ever has to unwrap it, and a failed
    attempt carries its error instead of raising.
    """

    conversation_id: str
    summarized: bool = False
    summary: ConversationSummary | None = None
    archived_turn_ids: tuple[str, ...] = ()
    reason: str = ""
    error: ConversationMemoryError | None = None

    def __bool__(self) -> bool:
        return self.summarized


class TieredMemoryManager:
    """Manage active turns, summaries and archived turns for conversations.

    Compaction attempts on the same conversation are serialized with a
    per-conversation asyncio lock, so concurrent add_turn calls cannot
    summarize the same turns twice. Reads take no lock.
    """

    def __init__(
        self,
        store: ConversationStore,
        summarizer: ConversationSummarizer,
        config: TieredMemoryConfig | dict[str, Any] | None = None,
        options: MemoryOptions | None = None,
        token_counter: TokenCounter | None = None,
    ):
        """Initialize the manager.

        Args:
            store: Conversation store to read and write.
            summarizer: Summarizer used for compaction.
            config: Compaction and prompt settings.
            options: Attribution settings used when rendering turns.
            token_counter: Token estimator for prompt assembly.
        """
        self.store = store
        self.summarizer = summarizer
        self._config = parse_model(TieredMemoryConfig, config or {}, "memory configuration")
        self.options = options or MemoryOptions()
        self.counter = token_counter or TokenCounter()
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    # =========================================================================
    # Configuration
    # =========================================================================

    def get_config(self) -> TieredMemoryConfig:
        """Get a copy of the current configuration."""
        return self._config.model_copy()

    def set_config(
        self,
        partial: TieredMemoryConfig | dict[str, Any] | None = None,
        **updates: Any,
    ) -> TieredMemoryConfig:
        """Merge a partial update into the configuration.

        Unspecified fields keep their current values. The merged result is
        validated as a whole before it replaces the current configuration.

        Raises:
            ValidationError: If the merged configuration is invalid.
        """
        if isinstance(partial, TieredMemoryConfig):
            partial = partial.model_dump(exclude_unset=True)
        merged = {**self._config.model_dump(), **(partial or {}), **updates}
        self._config = parse_model(TieredMemoryConfig, merged, "memory configuration")
        logger.debug(f"Memory configuration updated: {self._config.model_dump()}")
        return self.get_config()

    # =========================================================================
    # Writes
    # =========================================================================

    async def add_turn(self, conversation_id: str, turn: ConversationTurn | dict[str, Any]) -> str:
        """Persist a turn as active, then attempt compaction.

        The turn is stored before compaction runs; a failed compaction is
        logged and never fails this call.

        Returns:
            ID of the stored turn.

        Raises:
            NotFoundError: If the conversation does not exist.
            ValidationError: If the turn is malformed.
        """
        turn_id = await self.store.add_turn(conversation_id, turn)
        await self.check_and_summarize(conversation_id)
        return turn_id

    async def check_and_summarize(self, conversation_id: str) -> bool:
        """Compact the oldest active turns if the active tier is over its limit.

        Returns:
            True if a summary was created.
        """
        result = await self.compact(conversation_id)
        return result.summarized

    async def force_summarize(self, conversation_id: str) -> bool:
        """Compact the oldest active turns regardless of the active-tier size.

        Returns:
            True if a summary was created; False if fewer than
            summary_turn_count active turns exist or compaction failed.

        Raises:
            NotFoundError: If the conversation does not exist.
        """
        if await self.store.get_conversation(conversation_id) is None:
            raise NotFoundError(f"Conversation {conversation_id} not found", conversation_id)

        result = await self.compact(conversation_id, force=True)
        return result.summarized

    async def compact(self, conversation_id: str, force: bool = False) -> CompactionResult:
        """Run one compaction attempt and report its outcome.

        Selects the oldest summary_turn_count active turns, summarizes them,
        then stores the summary and archives exactly those turns in one
        store write. Summarizer and store failures are captured in the
        result; the store then holds neither the summary nor any archived
        turn, so the next attempt starts from the same active turns.

        Args:
            conversation_id: Conversation to compact.
            force: Skip the max_active_turns threshold check.

        Returns:
            CompactionResult describing what happened.
        """
        async with self._locks[conversation_id]:
            config = self._config

            try:
                all_turns = await self.store.get_turns(conversation_id)
            except Exception as e:
                logger.error(f"Cannot read turns for conversation {conversation_id}: {e}")
                return CompactionResult(
                    conversation_id,
                    reason="store read failed",
                    error=_as_summarization_error(e, conversation_id),
                )

            active = [turn for turn in all_turns if turn.is_active]

            if not force and len(active) <= config.max_active_turns:
                return CompactionResult(conversation_id, reason="under active-turn limit")

            if len(active) < config.summary_turn_count:
                logger.debug(
                    f"Not enough active turns to summarize for conversation {conversation_id} "
                    f"({len(active)} < {config.summary_turn_count})"
                )
                return CompactionResult(conversation_id, reason="not enough active turns")

            selected = active[: config.summary_turn_count]
            start_index = next(i for i, turn in enumerate(all_turns) if turn.id == selected[0].id)

            try:
                summary = await self.summarizer.summarize(selected, start_index=start_index)
                summary_id = await self.store.add_summary_and_archive(conversation_id, summary)
            except Exception as e:
                logger.error(f"Error summarizing turns for conversation {conversation_id}: {e}")
                return CompactionResult(
                    conversation_id,
                    reason="summarization failed",
                    error=_as_summarization_error(e, conversation_id),
                )

            logger.info(
                f"Summarized {len(selected)} turns for conversation {conversation_id} "
                f"into {summary_id}"
            )
            return CompactionResult(
                conversation_id,
                summarized=True,
                summary=summary.model_copy(
                    update={"id": summary_id, "conversation_id": conversation_id}
                ),
                archived_turn_ids=tuple(turn.id for turn in selected),
                reason="summarized",
            )

    # =========================================================================
    # Reads
    # =========================================================================

    async def get_tiered_history(self, conversation_id: str) -> TieredHistory:
        """Split a conversation into active turns, summaries and archived turns.

        Unknown or empty conversations yield three empty lists.
        """
        turns = await self.store.get_turns(conversation_id)
        summaries = await self.store.get_summaries(conversation_id)

        return TieredHistory(
            active_turns=[turn for turn in turns if turn.is_active],
            summaries=summaries,
            archived_turns=[turn for turn in turns if turn.is_archived],
        )

    async def get_turns(
        self,
        conversation_id: str,
        turn_filter: TurnFilter | None = None,
    ) -> list[ConversationTurn]:
        """Read turns straight from the store."""
        return await self.store.get_turns(conversation_id, turn_filter)

    async def get_summaries(self, conversation_id: str) -> list[ConversationSummary]:
        """Read summaries straight from the store."""
        return await self.store.get_summaries(conversation_id)

    async def format_history_for_prompt(
        self,
        conversation_id: str,
        max_tokens: int | None = None,
    ) -> str:
        """Render history for a language-model prompt within a token budget.

        Summaries come first, then the active turns. When the text exceeds
        the budget, whole summaries are dropped oldest first, then whole
        active turns oldest first. The most recent turn is always kept.

        Args:
            conversation_id: Conversation to render.
            max_tokens: Budget override; defaults to the configured max_tokens.

        Returns:
            Formatted history, or an empty string for an empty conversation.
        """
        budget = self._config.max_tokens if max_tokens is None else max_tokens
        if budget < 0:
            budget = 0

        history = await self.get_tiered_history(conversation_id)
        summaries = list(history.summaries)
        turns = list(history.active_turns)

        text = self._render(summaries, turns)
        while self.counter.count(text) > budget:
            # The newest summary survives only when there is no active turn to show
            if summaries and (turns or len(summaries) > 1):
                summaries.pop(0)
            elif len(turns) > 1:
                turns.pop(0)
            else:
                break
            text = self._render(summaries, turns)

        dropped_summaries = len(history.summaries) - len(summaries)
        dropped_turns = len(history.active_turns) - len(turns)
        if dropped_summaries or dropped_turns:
            logger.debug(
                f"Trimmed history for {conversation_id} to {budget} tokens: "
                f"dropped {dropped_summaries} summaries and {dropped_turns} turns"
            )

        return text

    def _render(self, summaries: list[ConversationSummary], turns: list[ConversationTurn]) -> str:
        sections: list[str] = []

        if summaries:
            lines = [SUMMARIES_HEADER]
            for index, summary in enumerate(summaries, start=1):
                plural = "turn" if summary.turn_count == 1 else "turns"
                lines.append(f"Summary {index} ({summary.turn_count} {plural}): {summary.content}")
            sections.append("\n\n".join(lines))

        if turns:
            lines = [RECENT_HEADER]
            lines.extend(format_turn(turn, self.options.label_for(turn)) for turn in turns)
            sections.append("\n\n".join(lines))

        return "\n\n".join(sections)
