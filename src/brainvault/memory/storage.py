"""
Conversation storage for brainvault.

Defines the store contract used by the tiered memory manager and two
implementations: a process-local in-memory store and a JSON-file store
that keeps one document per conversation.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any

from brainvault.memory.exceptions import NotFoundError, StoreError, ValidationError
from brainvault.memory.models import (
    Conversation,
    ConversationInfo,
    ConversationSummary,
    ConversationTurn,
    InterfaceType,
    NewConversation,
    SearchCriteria,
    TurnFilter,
    new_id,
    parse_model,
)
from brainvault.storage.paths import expand_path, get_memory_dir

logger = logging.getLogger(__name__)


class ConversationStore(ABC):
    """Storage contract for conversations, turns and summaries.

    Reads must reflect every earlier write in the process. Reads on an
    unknown conversation return None or an empty list; writes that need
    an existing conversation raise NotFoundError.
    """

    @abstractmethod
    async def create_conversation(self, conversation: NewConversation) -> str:
        """Create a conversation and return its ID."""
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        """Get a conversation header, or None if unknown."""
        ...

    @abstractmethod
    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: InterfaceType | str | None = None,
    ) -> str | None:
        """Find the conversation ID bound to a room.

        Without an interface type, matrix rooms are checked before cli.
        """
        ...

    @abstractmethod
    async def add_turn(self, conversation_id: str, turn: ConversationTurn | dict[str, Any]) -> str:
        """Append an active turn and return its ID."""
        ...

    @abstractmethod
    async def get_turns(
        self,
        conversation_id: str,
        turn_filter: TurnFilter | None = None,
    ) -> list[ConversationTurn]:
        """Get turns in chronological order (ties keep insertion order)."""
        ...

    @abstractmethod
    async def add_summary(
        self,
        conversation_id: str,
        summary: ConversationSummary | dict[str, Any],
    ) -> str:
        """Append a summary and return its ID."""
        ...

    @abstractmethod
    async def get_summaries(self, conversation_id: str) -> list[ConversationSummary]:
        """Get summaries in creation order."""
        ...

    @abstractmethod
    async def mark_turns_archived(
        self,
        conversation_id: str,
        turn_ids: Iterable[str],
        summary_id: str,
    ) -> None:
        """Move turns to the archived tier under an existing summary."""
        ...

    @abstractmethod
    async def add_summary_and_archive(
        self,
        conversation_id: str,
        summary: ConversationSummary | dict[str, Any],
    ) -> str:
        """Store a summary and archive every turn in its provenance as one write.

        Either both happen or neither does: the summary and all of its
        turns are checked before anything changes, and a failed write
        leaves the conversation as it was.

        Returns:
            ID of the stored summary.

        Raises:
            NotFoundError: If the conversation or a provenance turn does not exist.
            ValidationError: If the summary is malformed, its ID is taken, or a
                provenance turn is already archived.
            StoreError: If the backend write fails.
        """
        ...

    @abstractmethod
    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        """Merge metadata into a conversation. Returns False if unknown."""
        ...

    @abstractmethod
    async def get_metadata(self, conversation_id: str) -> dict[str, Any] | None:
        """Get a conversation's metadata, or None if unknown."""
        ...

    @abstractmethod
    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        """List conversations matching criteria, most recently updated first."""
        ...

    @abstractmethod
    async def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation with its turns and summaries."""
        ...

    async def get_recent_conversations(
        self,
        limit: int | None = None,
        interface_type: InterfaceType | str | None = None,
    ) -> list[ConversationInfo]:
        """Get the most recently updated conversations."""
        return await self.find_conversations(
            SearchCriteria(interface_type=interface_type, limit=limit)
        )


def _room_key(room_id: str, interface_type: InterfaceType | str) -> str:
    return f"{InterfaceType(interface_type).value}:{room_id}"


@dataclass
class _Snapshot:
    """State of one conversation before a write, restored if the write fails."""

    conversation: Conversation | None
    turns: list[ConversationTurn] | None
    summaries: list[ConversationSummary] | None
    room_key: str | None
    previous_binding: str | None = None


class InMemoryConversationStore(ConversationStore):
    """In-memory conversation store.

    All data lives in process memory and is lost on restart. Returned
    objects are copies, so callers cannot change stored state by
    mutating them. Every write goes through ``_commit``: if persisting
    fails, the conversation is restored to its state before the write.
    """

    def __init__(self) -> None:
        self._conversations: dict[str, Conversation] = {}
        self._turns: dict[str, list[ConversationTurn]] = {}
        self._summaries: dict[str, list[ConversationSummary]] = {}
        self._room_index: dict[str, str] = {}

    # =========================================================================
    # Conversations
    # =========================================================================

    async def create_conversation(self, conversation: NewConversation | dict[str, Any]) -> str:
        new = parse_model(NewConversation, conversation, "conversation")
        conversation_id = new.id or new_id("conv")
        if conversation_id in self._conversations:
            raise ValidationError(f"Conversation {conversation_id} already exists")

        now = datetime.now()
        created = Conversation(
            id=conversation_id,
            interface_type=new.interface_type,
            room_id=new.room_id,
            created_at=new.created_at or now,
            updated_at=new.created_at or now,
            metadata=dict(new.metadata),
        )
        room_key = _room_key(created.room_id, created.interface_type)
        snapshot = _Snapshot(None, None, None, room_key, self._room_index.get(room_key))

        self._conversations[conversation_id] = created
        self._turns[conversation_id] = []
        self._summaries[conversation_id] = []
        self._room_index[room_key] = conversation_id

        await self._commit(conversation_id, snapshot)
        logger.debug(f"Created conversation {conversation_id} for room {created.room_id}")
        return conversation_id

    async def get_conversation(self, conversation_id: str) -> Conversation | None:
        conversation = self._conversations.get(conversation_id)
        return conversation.model_copy(deep=True) if conversation else None

    async def get_conversation_by_room(
        self,
        room_id: str,
        interface_type: InterfaceType | str | None = None,
    ) -> str | None:
        if interface_type is not None:
            return self._room_index.get(_room_key(room_id, interface_type))

        for candidate in (InterfaceType.MATRIX, InterfaceType.CLI):
            conversation_id = self._room_index.get(_room_key(room_id, candidate))
            if conversation_id:
                return conversation_id
        return None

    async def update_metadata(self, conversation_id: str, metadata: dict[str, Any]) -> bool:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            return False

        snapshot = self._snapshot(conversation_id)
        self._conversations[conversation_id] = conversation.model_copy(
            update={
                "metadata": {**conversation.metadata, **metadata},
                "updated_at": datetime.now(),
            }
        )
        await self._commit(conversation_id, snapshot)
        return True

    async def get_metadata(self, conversation_id: str) -> dict[str, Any] | None:
        conversation = self._conversations.get(conversation_id)
        return dict(conversation.metadata) if conversation else None

    async def find_conversations(self, criteria: SearchCriteria) -> list[ConversationInfo]:
        results: list[ConversationInfo] = []
        lowered = criteria.query.lower() if criteria.query else None

        for conversation in self._conversations.values():
            if criteria.interface_type and conversation.interface_type != criteria.interface_type:
                continue
            if criteria.room_id and conversation.room_id != criteria.room_id:
                continue
            if criteria.start_date and conversation.created_at < criteria.start_date:
                continue
            if criteria.end_date and conversation.created_at > criteria.end_date:
                continue

            turns = self._turns.get(conversation.id, [])
            if lowered and not any(
                lowered in turn.query.lower() or lowered in turn.response.lower()
                for turn in turns
            ):
                continue

            results.append(
                ConversationInfo(
                    id=conversation.id,
                    interface_type=conversation.interface_type,
                    room_id=conversation.room_id,
                    created_at=conversation.created_at,
                    updated_at=conversation.updated_at,
                    turn_count=len(turns),
                    metadata=dict(conversation.metadata),
                )
            )

        results.sort(key=lambda info: info.updated_at, reverse=True)

        end = criteria.offset + criteria.limit if criteria.limit is not None else None
        return results[criteria.offset : end]

    async def delete_conversation(self, conversation_id: str) -> bool:
        if conversation_id not in self._conversations:
            return False

        snapshot = self._snapshot(conversation_id)
        self._room_index.pop(snapshot.room_key, None)
        del self._conversations[conversation_id]
        self._turns.pop(conversation_id, None)
        self._summaries.pop(conversation_id, None)

        try:
            await self._remove(conversation_id)
        except Exception:
            self._restore(conversation_id, snapshot)
            raise
        return True

    # =========================================================================
    # Turns
    # =========================================================================

    async def add_turn(self, conversation_id: str, turn: ConversationTurn | dict[str, Any]) -> str:
        conversation = self._require(conversation_id)
        parsed = parse_model(ConversationTurn, turn, "turn")

        if not parsed.is_active:
            raise ValidationError("New turns must be added to the active tier")

        if any(existing.id == parsed.id for existing in self._turns[conversation_id]):
            raise ValidationError(f"Turn {parsed.id} already exists in {conversation_id}")

        snapshot = self._snapshot(conversation_id)
        self._turns[conversation_id].append(
            parsed.model_copy(update={"conversation_id": conversation_id})
        )
        self._conversations[conversation_id] = conversation.model_copy(
            update={"updated_at": datetime.now()}
        )
        await self._commit(conversation_id, snapshot)
        return parsed.id

    async def get_turns(
        self,
        conversation_id: str,
        turn_filter: TurnFilter | None = None,
    ) -> list[ConversationTurn]:
        turn_filter = turn_filter or TurnFilter()

        # sorted() is stable, so equal timestamps keep insertion order
        turns = sorted(self._turns.get(conversation_id, []), key=lambda t: t.timestamp)

        if turn_filter.tier == "active":
            turns = [t for t in turns if t.is_active]
        elif turn_filter.tier == "archived":
            turns = [t for t in turns if t.is_archived]

        end = turn_filter.offset + turn_filter.limit if turn_filter.limit is not None else None
        return [t.model_copy(deep=True) for t in turns[turn_filter.offset : end]]

    async def mark_turns_archived(
        self,
        conversation_id: str,
        turn_ids: Iterable[str],
        summary_id: str,
    ) -> None:
        self._require(conversation_id)
        if not any(s.id == summary_id for s in self._summaries[conversation_id]):
            raise NotFoundError(
                f"Summary {summary_id} not found in conversation {conversation_id}",
                conversation_id,
            )

        positions = self._archivable(conversation_id, turn_ids, summary_id)
        snapshot = self._snapshot(conversation_id)
        self._archive(conversation_id, positions, summary_id)
        await self._commit(conversation_id, snapshot)

    # =========================================================================
    # Summaries
    # =========================================================================

    async def add_summary(
        self,
        conversation_id: str,
        summary: ConversationSummary | dict[str, Any],
    ) -> str:
        parsed = self._new_summary(conversation_id, summary)

        snapshot = self._snapshot(conversation_id)
        self._summaries[conversation_id].append(parsed)
        await self._commit(conversation_id, snapshot)
        return parsed.id

    async def add_summary_and_archive(
        self,
        conversation_id: str,
        summary: ConversationSummary | dict[str, Any],
    ) -> str:
        parsed = self._new_summary(conversation_id, summary)
        positions = self._archivable(conversation_id, parsed.original_turn_ids, None)

        snapshot = self._snapshot(conversation_id)
        self._summaries[conversation_id].append(parsed)
        self._archive(conversation_id, positions, parsed.id)
        await self._commit(conversation_id, snapshot)
        return parsed.id

    async def get_summaries(self, conversation_id: str) -> list[ConversationSummary]:
        return [s.model_copy(deep=True) for s in self._summaries.get(conversation_id, [])]

    # =========================================================================
    # Helpers
    # =========================================================================

    def _require(self, conversation_id: str) -> Conversation:
        conversation = self._conversations.get(conversation_id)
        if conversation is None:
            raise NotFoundError(f"Conversation {conversation_id} not found", conversation_id)
        return conversation

    def _new_summary(
        self,
        conversation_id: str,
        summary: ConversationSummary | dict[str, Any],
    ) -> ConversationSummary:
        self._require(conversation_id)
        parsed = parse_model(ConversationSummary, summary, "summary")
        if any(existing.id == parsed.id for existing in self._summaries[conversation_id]):
            raise ValidationError(f"Summary {parsed.id} already exists in {conversation_id}")
        return parsed.model_copy(update={"conversation_id": conversation_id})

    def _archivable(
        self,
        conversation_id: str,
        turn_ids: Iterable[str],
        summary_id: str | None,
    ) -> list[int]:
        """Positions of turns that may be archived under summary_id; raises before any change."""
        turns = self._turns[conversation_id]
        positions = {turn.id: index for index, turn in enumerate(turns)}
        result: list[int] = []

        for turn_id in dict.fromkeys(turn_ids):
            if turn_id not in positions:
                raise NotFoundError(
                    f"Turn {turn_id} not found in conversation {conversation_id}",
                    conversation_id,
                )
            current = turns[positions[turn_id]]
            if current.is_archived and current.summary_id != summary_id:
                raise ValidationError(
                    f"Turn {turn_id} is already archived under summary {current.summary_id}"
                )
            result.append(positions[turn_id])

        return result

    def _archive(self, conversation_id: str, positions: list[int], summary_id: str) -> None:
        turns = self._turns[conversation_id]
        for index in positions:
            turns[index] = turns[index].archive(summary_id)

    def _snapshot(self, conversation_id: str) -> _Snapshot:
        # Lists are copied shallowly; stored models are frozen and only ever replaced
        conversation = self._conversations.get(conversation_id)
        turns = self._turns.get(conversation_id)
        summaries = self._summaries.get(conversation_id)
        return _Snapshot(
            conversation=conversation,
            turns=list(turns) if turns is not None else None,
            summaries=list(summaries) if summaries is not None else None,
            room_key=(
                _room_key(conversation.room_id, conversation.interface_type)
                if conversation
                else None
            ),
        )

    def _restore(self, conversation_id: str, snapshot: _Snapshot) -> None:
        for table, value in (
            (self._conversations, snapshot.conversation),
            (self._turns, snapshot.turns),
            (self._summaries, snapshot.summaries),
        ):
            if value is None:
                table.pop(conversation_id, None)
            else:
                table[conversation_id] = value

        if snapshot.room_key is None:
            return
        if snapshot.conversation is not None:
            self._room_index[snapshot.room_key] = conversation_id
        elif snapshot.previous_binding is not None:
            self._room_index[snapshot.room_key] = snapshot.previous_binding
        else:
            self._room_index.pop(snapshot.room_key, None)

    async def _commit(self, conversation_id: str, snapshot: _Snapshot) -> None:
        try:
            await self._persist(conversation_id)
        except Exception:
            self._restore(conversation_id, snapshot)
            logger.warning(f"Rolled back unsaved change to conversation {conversation_id}")
            raise

    async def _persist(self, conversation_id: str) -> None:
        """Hook for durable subclasses; the in-memory store keeps nothing on disk."""

    async def _remove(self, conversation_id: str) -> None:
        """Hook for durable subclasses; called after a conversation is deleted."""

    def clear(self) -> None:
        """Remove all data from this store."""
        self._conversations.clear()
        self._turns.clear()
        self._summaries.clear()
        self._room_index.clear()


class JsonFileConversationStore(InMemoryConversationStore):
    """File-based conversation store.

    Keeps the in-memory indexes as the read path and writes one JSON
    document per conversation after every mutation. Existing documents
    are loaded when the store is created.
    """

    def __init__(self, base_path: Path | str | None = None):
        """Initialize the JSON store.

        Args:
            base_path: Directory for conversation files.
                Defaults to $BRAINVAULT_HOME/memory/conversations.
        """
        super().__init__()
        if base_path is None:
            self.base_path = get_memory_dir() / "conversations"
        else:
            self.base_path = expand_path(base_path)

        try:
            self.base_path.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot create store directory {self.base_path}: {e}") from e

        self._load_all()

    def _document_path(self, conversation_id: str) -> Path:
        return self.base_path / f"{conversation_id}.json"

    def _serialize(self, conversation_id: str) -> dict[str, Any]:
        return {
            "conversation": self._conversations[conversation_id].model_dump(mode="json"),
            "turns": [t.model_dump(mode="json") for t in self._turns[conversation_id]],
            "summaries": [s.model_dump(mode="json") for s in self._summaries[conversation_id]],
        }

    def _load_all(self) -> None:
        for path in sorted(self.base_path.glob("*.json")):
            try:
                data = json.loads(path.read_text(encoding="utf-8"))
                conversation = Conversation.model_validate(data["conversation"])
                turns = [ConversationTurn.model_validate(t) for t in data.get("turns", [])]
                summaries = [
                    ConversationSummary.model_validate(s) for s in data.get("summaries", [])
                ]
            except (OSError, ValueError, KeyError) as e:
                raise StoreError(f"Cannot load conversation file {path}: {e}") from e

            self._conversations[conversation.id] = conversation
            self._turns[conversation.id] = turns
            self._summaries[conversation.id] = summaries
            self._room_index[_room_key(conversation.room_id, conversation.interface_type)] = (
                conversation.id
            )

        logger.debug(f"Loaded {len(self._conversations)} conversations from {self.base_path}")

    def _write_document(self, path: Path, document: dict[str, Any]) -> None:
        temp_path = path.with_suffix(".json.tmp")
        temp_path.write_text(json.dumps(document, indent=2, ensure_ascii=False), encoding="utf-8")
        temp_path.replace(path)

    async def _persist(self, conversation_id: str) -> None:
        path = self._document_path(conversation_id)
        try:
            await asyncio.to_thread(self._write_document, path, self._serialize(conversation_id))
        except OSError as e:
            raise StoreError(f"Cannot write conversation file {path}: {e}") from e

    async def _remove(self, conversation_id: str) -> None:
        path = self._document_path(conversation_id)
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            raise StoreError(f"Cannot delete conversation file {path}: {e}") from e
