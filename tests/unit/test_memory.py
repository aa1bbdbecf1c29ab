"""
Unit tests for the brainvault memory models, stores and summarizer.
"""

import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import pytest
from conftest import BASE_TIME, FakeLanguageModel, make_turn

from brainvault.memory import (
    ArchivedTier,
    ConversationSummarizer,
    ConversationSummary,
    ConversationTurn,
    InMemoryConversationStore,
    InterfaceType,
    JsonFileConversationStore,
    MemoryOptions,
    NewConversation,
    NotFoundError,
    SearchCriteria,
    StoreError,
    SummarizationError,
    SummaryOutput,
    SummaryProvenance,
    TieredMemoryConfig,
    TokenCounter,
    TurnFilter,
    ValidationError,
)
from brainvault.memory.models import parse_model
from brainvault.providers import NetworkError


def make_summary(turn_ids: list[str], **overrides) -> ConversationSummary:
    data = {
        "content": "Summary text",
        "start_turn_index": 0,
        "end_turn_index": len(turn_ids) - 1,
        "start_timestamp": BASE_TIME,
        "end_timestamp": BASE_TIME + timedelta(minutes=len(turn_ids)),
        "turn_count": len(turn_ids),
        "provenance": SummaryProvenance(original_turn_ids=turn_ids),
    }
    data.update(overrides)
    return ConversationSummary(**data)


async def new_conversation(store, room_id: str = "room-1", interface_type: str = "cli") -> str:
    return await store.create_conversation(
        NewConversation(room_id=room_id, interface_type=interface_type)
    )


# =============================================================================
# Model Tests
# =============================================================================


class TestConversationTurn:
    """Tests for ConversationTurn model."""

    def test_new_turn_is_active(self):
        """Test that a new turn starts in the active tier."""
        turn = ConversationTurn(query="Hello", response="Hi!")
        assert turn.is_active is True
        assert turn.is_archived is False
        assert turn.summary_id is None
        assert turn.id.startswith("turn-")

    def test_archive_returns_copy(self):
        """Test that archiving produces a new archived turn."""
        turn = make_turn(1)
        archived = turn.archive("summ-1")

        assert archived.is_archived is True
        assert archived.summary_id == "summ-1"
        assert archived.query == turn.query
        assert turn.is_active is True

    def test_turn_is_immutable(self):
        """Test that turn content cannot be reassigned."""
        turn = make_turn(1)
        with pytest.raises(Exception):
            turn.query = "changed"

    def test_empty_query_rejected(self):
        """Test that an empty query is a validation error."""
        with pytest.raises(ValidationError):
            parse_model(ConversationTurn, {"query": "", "response": "x"}, "turn")

    def test_tier_discriminator_round_trip(self):
        """Test that tiers survive a JSON dump/validate cycle."""
        turn = make_turn(1).archive("summ-9")
        restored = ConversationTurn.model_validate(turn.model_dump(mode="json"))
        assert isinstance(restored.tier, ArchivedTier)
        assert restored.summary_id == "summ-9"

    def test_archived_tier_requires_summary_id(self):
        """Test that an archived tier without a summary reference is unrepresentable."""
        with pytest.raises(Exception):
            ArchivedTier(summary_id="")
        with pytest.raises(Exception):
            ConversationTurn(query="q", response="r", tier={"state": "archived"})


class TestConversationSummary:
    """Tests for ConversationSummary model."""

    def test_original_turn_ids(self):
        """Test provenance access."""
        summary = make_summary(["turn-1", "turn-2"])
        assert summary.original_turn_ids == ["turn-1", "turn-2"]
        assert summary.turn_count == 2

    def test_turn_count_must_match_provenance(self):
        """Test that turn_count is checked against provenance."""
        with pytest.raises(Exception):
            make_summary(["turn-1", "turn-2"], turn_count=3)

    def test_provenance_required(self):
        """Test that a summary without source turns is rejected."""
        with pytest.raises(Exception):
            SummaryProvenance(original_turn_ids=[])

    def test_index_range_checked(self):
        """Test that end index cannot precede start index."""
        with pytest.raises(Exception):
            make_summary(["turn-1"], start_turn_index=3, end_turn_index=2)


class TestTieredMemoryConfig:
    """Tests for TieredMemoryConfig validation."""

    def test_defaults(self):
        """Test default configuration values."""
        config = TieredMemoryConfig()
        assert config.max_active_turns == 10
        assert config.summary_turn_count == 5
        assert config.max_tokens == 2000

    def test_summary_turn_count_above_max_rejected(self):
        """Test that summary_turn_count > max_active_turns is invalid."""
        with pytest.raises(ValidationError):
            parse_model(
                TieredMemoryConfig,
                {"max_active_turns": 3, "summary_turn_count": 4},
                "memory configuration",
            )

    def test_non_positive_thresholds_rejected(self):
        """Test that thresholds below one are invalid."""
        for data in ({"max_active_turns": 0}, {"summary_turn_count": 0}, {"max_tokens": -1}):
            with pytest.raises(ValidationError):
                parse_model(TieredMemoryConfig, data, "memory configuration")

    def test_unknown_field_rejected(self):
        """Test that unknown keys are rejected."""
        with pytest.raises(ValidationError):
            parse_model(TieredMemoryConfig, {"max_summaries": 3}, "memory configuration")


# =============================================================================
# Token Counter Tests
# =============================================================================


class TestTokenCounter:
    """Tests for TokenCounter."""

    def test_approximate_count(self):
        """Test the four-characters-per-token approximation."""
        counter = TokenCounter()
        assert counter.count("abcd") == 1
        assert counter.count("abcde") == 2
        assert counter.count("x" * 400) == 100

    def test_count_empty_text(self):
        """Test counting empty text."""
        assert TokenCounter().count("") == 0

    def test_fits(self):
        """Test budget check."""
        counter = TokenCounter()
        assert counter.fits("abcdefgh", 2) is True
        assert counter.fits("abcdefghi", 2) is False

    def test_tiktoken_mode(self):
        """Test that tiktoken mode counts encoded tokens."""
        encoding = MagicMock()
        encoding.encode.return_value = [11, 22, 33]
        with patch("brainvault.memory.context.tiktoken.get_encoding", return_value=encoding):
            counter = TokenCounter(mode="tiktoken")
            assert counter.count("three tokens here") == 3

    def test_unknown_mode(self):
        """Test that an unknown estimator is rejected."""
        with pytest.raises(ValueError):
            TokenCounter(mode="exact")  # type: ignore[arg-type]


# =============================================================================
# In-Memory Store Tests
# =============================================================================


class TestInMemoryConversationStore:
    """Tests for InMemoryConversationStore."""

    @pytest.mark.asyncio
    async def test_create_and_get_conversation(self, store):
        """Test creating a conversation."""
        conversation_id = await new_conversation(store)
        conversation = await store.get_conversation(conversation_id)

        assert conversation is not None
        assert conversation.room_id == "room-1"
        assert conversation.interface_type == InterfaceType.CLI

    @pytest.mark.asyncio
    async def test_unknown_conversation_reads(self, store):
        """Test that reads on unknown ids degrade to empty results."""
        assert await store.get_conversation("missing") is None
        assert await store.get_turns("missing") == []
        assert await store.get_summaries("missing") == []
        assert await store.get_metadata("missing") is None

    @pytest.mark.asyncio
    async def test_get_conversation_by_room(self, store):
        """Test room lookups, with matrix preferred when no interface is given."""
        cli_id = await new_conversation(store, "shared-room", "cli")
        matrix_id = await new_conversation(store, "shared-room", "matrix")

        assert await store.get_conversation_by_room("shared-room", "cli") == cli_id
        assert await store.get_conversation_by_room("shared-room", InterfaceType.MATRIX) == matrix_id
        assert await store.get_conversation_by_room("shared-room") == matrix_id
        assert await store.get_conversation_by_room("other-room") is None

    @pytest.mark.asyncio
    async def test_add_turn_bumps_updated_at(self, store):
        """Test that adding a turn updates the conversation timestamp."""
        conversation_id = await new_conversation(store)
        before = (await store.get_conversation(conversation_id)).updated_at

        turn_id = await store.add_turn(conversation_id, make_turn(1))

        assert turn_id == "turn-1"
        assert (await store.get_conversation(conversation_id)).updated_at >= before

    @pytest.mark.asyncio
    async def test_add_turn_unknown_conversation(self, store):
        """Test that adding to an unknown conversation fails."""
        with pytest.raises(NotFoundError):
            await store.add_turn("missing", make_turn(1))

    @pytest.mark.asyncio
    async def test_add_turn_rejects_archived_or_duplicate(self, store):
        """Test turn validation on add."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        with pytest.raises(ValidationError):
            await store.add_turn(conversation_id, make_turn(1))
        with pytest.raises(ValidationError):
            await store.add_turn(conversation_id, make_turn(2).archive("summ-1"))
        with pytest.raises(ValidationError):
            await store.add_turn(conversation_id, {"query": "", "response": "r"})

    @pytest.mark.asyncio
    async def test_get_turns_chronological_and_stable(self, store):
        """Test ordering by timestamp with insertion order on ties."""
        conversation_id = await new_conversation(store)
        same_time = BASE_TIME + timedelta(hours=1)

        await store.add_turn(conversation_id, make_turn(3))
        await store.add_turn(conversation_id, make_turn(1))
        await store.add_turn(conversation_id, make_turn(10, id="tie-a", timestamp=same_time))
        await store.add_turn(conversation_id, make_turn(11, id="tie-b", timestamp=same_time))

        turns = await store.get_turns(conversation_id)
        assert [t.id for t in turns] == ["turn-1", "turn-3", "tie-a", "tie-b"]
        assert all(t.conversation_id == conversation_id for t in turns)

    @pytest.mark.asyncio
    async def test_get_turns_filter(self, store):
        """Test tier filter and pagination."""
        conversation_id = await new_conversation(store)
        for i in range(1, 6):
            await store.add_turn(conversation_id, make_turn(i))
        summary_id = await store.add_summary(conversation_id, make_summary(["turn-1", "turn-2"]))
        await store.mark_turns_archived(conversation_id, ["turn-1", "turn-2"], summary_id)

        active = await store.get_turns(conversation_id, TurnFilter(tier="active"))
        archived = await store.get_turns(conversation_id, TurnFilter(tier="archived"))
        page = await store.get_turns(conversation_id, TurnFilter(offset=1, limit=2))

        assert [t.id for t in active] == ["turn-3", "turn-4", "turn-5"]
        assert [t.id for t in archived] == ["turn-1", "turn-2"]
        assert [t.id for t in page] == ["turn-2", "turn-3"]

    @pytest.mark.asyncio
    async def test_mark_turns_archived(self, store):
        """Test archiving turns under a summary."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))
        await store.add_turn(conversation_id, make_turn(2))
        summary_id = await store.add_summary(conversation_id, make_summary(["turn-1"]))

        await store.mark_turns_archived(conversation_id, ["turn-1"], summary_id)

        turns = await store.get_turns(conversation_id)
        assert turns[0].summary_id == summary_id
        assert turns[1].is_active

    @pytest.mark.asyncio
    async def test_mark_turns_archived_requires_summary(self, store):
        """Test that archiving needs an existing summary."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        with pytest.raises(NotFoundError):
            await store.mark_turns_archived(conversation_id, ["turn-1"], "summ-missing")

    @pytest.mark.asyncio
    async def test_mark_turns_archived_is_all_or_nothing(self, store):
        """Test that an unknown turn id leaves every turn untouched."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))
        summary_id = await store.add_summary(conversation_id, make_summary(["turn-1"]))

        with pytest.raises(NotFoundError):
            await store.mark_turns_archived(conversation_id, ["turn-1", "turn-x"], summary_id)

        turns = await store.get_turns(conversation_id)
        assert turns[0].is_active

    @pytest.mark.asyncio
    async def test_cannot_rearchive_under_other_summary(self, store):
        """Test that an archived turn belongs to exactly one summary."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))
        first = await store.add_summary(conversation_id, make_summary(["turn-1"]))
        second = await store.add_summary(conversation_id, make_summary(["turn-1"]))
        await store.mark_turns_archived(conversation_id, ["turn-1"], first)

        with pytest.raises(ValidationError):
            await store.mark_turns_archived(conversation_id, ["turn-1"], second)

    @pytest.mark.asyncio
    async def test_add_summary_and_archive(self, store):
        """Test storing a summary and archiving its turns in one write."""
        conversation_id = await new_conversation(store)
        for index in (1, 2, 3):
            await store.add_turn(conversation_id, make_turn(index))

        summary_id = await store.add_summary_and_archive(
            conversation_id, make_summary(["turn-1", "turn-2"])
        )

        turns = await store.get_turns(conversation_id)
        assert [t.summary_id for t in turns] == [summary_id, summary_id, None]
        assert [s.id for s in await store.get_summaries(conversation_id)] == [summary_id]

    @pytest.mark.asyncio
    async def test_add_summary_and_archive_unknown_turn(self, store):
        """Test that an unknown turn id leaves no summary and no archived turn."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        with pytest.raises(NotFoundError):
            await store.add_summary_and_archive(
                conversation_id, make_summary(["turn-1", "turn-x"])
            )

        assert await store.get_summaries(conversation_id) == []
        assert (await store.get_turns(conversation_id))[0].is_active

    @pytest.mark.asyncio
    async def test_add_summary_and_archive_rejects_archived_turn(self, store):
        """Test that turns already covered by a summary cannot be summarized again."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))
        first = await store.add_summary_and_archive(conversation_id, make_summary(["turn-1"]))

        with pytest.raises(ValidationError):
            await store.add_summary_and_archive(conversation_id, make_summary(["turn-1"]))

        assert [s.id for s in await store.get_summaries(conversation_id)] == [first]

    @pytest.mark.asyncio
    async def test_summaries_append_only_order(self, store):
        """Test that summaries keep creation order."""
        conversation_id = await new_conversation(store)
        first = await store.add_summary(conversation_id, make_summary(["turn-1"]))
        second = await store.add_summary(conversation_id, make_summary(["turn-2"]))

        summaries = await store.get_summaries(conversation_id)
        assert [s.id for s in summaries] == [first, second]
        assert all(s.conversation_id == conversation_id for s in summaries)

    @pytest.mark.asyncio
    async def test_add_summary_unknown_conversation(self, store):
        """Test that adding a summary to an unknown conversation fails."""
        with pytest.raises(NotFoundError):
            await store.add_summary("missing", make_summary(["turn-1"]))

    @pytest.mark.asyncio
    async def test_reads_are_copies(self, store):
        """Test that mutating read results does not change stored state."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1, metadata={"source": "cli"}))

        turns = await store.get_turns(conversation_id)
        turns[0].metadata["source"] = "tampered"
        turns.clear()

        stored = await store.get_turns(conversation_id)
        assert stored[0].metadata == {"source": "cli"}

    @pytest.mark.asyncio
    async def test_metadata(self, store):
        """Test merging conversation metadata."""
        conversation_id = await new_conversation(store)

        assert await store.update_metadata(conversation_id, {"topic": "travel"}) is True
        assert await store.update_metadata(conversation_id, {"mood": "happy"}) is True
        assert await store.update_metadata("missing", {"x": 1}) is False
        assert await store.get_metadata(conversation_id) == {"topic": "travel", "mood": "happy"}

    @pytest.mark.asyncio
    async def test_find_conversations(self, store):
        """Test searching by interface and text."""
        cli_id = await new_conversation(store, "room-a", "cli")
        matrix_id = await new_conversation(store, "room-b", "matrix")
        await store.add_turn(cli_id, make_turn(1, query="Where is the ecosystem note?"))
        await store.add_turn(matrix_id, make_turn(2))

        by_interface = await store.find_conversations(SearchCriteria(interface_type="matrix"))
        by_text = await store.find_conversations(SearchCriteria(query="ECOSYSTEM"))

        assert [info.id for info in by_interface] == [matrix_id]
        assert [info.id for info in by_text] == [cli_id]
        assert by_text[0].turn_count == 1

    @pytest.mark.asyncio
    async def test_recent_conversations_sorted(self, store):
        """Test most-recently-updated ordering and limit."""
        first = await new_conversation(store, "room-a")
        second = await new_conversation(store, "room-b")
        await store.add_turn(first, make_turn(1))

        recent = await store.get_recent_conversations(limit=1)
        assert [info.id for info in recent] == [first]

        everything = await store.get_recent_conversations()
        assert {info.id for info in everything} == {first, second}

    @pytest.mark.asyncio
    async def test_delete_conversation(self, store):
        """Test deleting a conversation and its room binding."""
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        assert await store.delete_conversation(conversation_id) is True
        assert await store.delete_conversation(conversation_id) is False
        assert await store.get_turns(conversation_id) == []
        assert await store.get_conversation_by_room("room-1") is None


# =============================================================================
# JSON Store Tests
# =============================================================================


class TestJsonFileConversationStore:
    """Tests for JsonFileConversationStore."""

    @pytest.mark.asyncio
    async def test_persists_and_reloads(self, temp_dir):
        """Test that a new store instance sees earlier writes."""
        path = temp_dir / "conversations"
        store = JsonFileConversationStore(path)
        conversation_id = await new_conversation(store, "!room:example.org", "matrix")
        await store.add_turn(conversation_id, make_turn(1))
        await store.add_turn(conversation_id, make_turn(2))
        summary_id = await store.add_summary(conversation_id, make_summary(["turn-1"]))
        await store.mark_turns_archived(conversation_id, ["turn-1"], summary_id)

        reloaded = JsonFileConversationStore(path)
        turns = await reloaded.get_turns(conversation_id)
        summaries = await reloaded.get_summaries(conversation_id)

        assert [t.id for t in turns] == ["turn-1", "turn-2"]
        assert turns[0].summary_id == summary_id
        assert turns[1].is_active
        assert [s.id for s in summaries] == [summary_id]
        assert await reloaded.get_conversation_by_room("!room:example.org") == conversation_id

    @pytest.mark.asyncio
    async def test_document_layout(self, temp_dir):
        """Test one JSON document per conversation."""
        store = JsonFileConversationStore(temp_dir)
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        document = json.loads((temp_dir / f"{conversation_id}.json").read_text())
        assert document["conversation"]["id"] == conversation_id
        assert document["turns"][0]["tier"] == {"state": "active"}
        assert document["summaries"] == []

    @pytest.mark.asyncio
    async def test_delete_removes_file(self, temp_dir):
        """Test that deleting a conversation removes its document."""
        store = JsonFileConversationStore(temp_dir)
        conversation_id = await new_conversation(store)

        await store.delete_conversation(conversation_id)
        assert not (temp_dir / f"{conversation_id}.json").exists()

    @pytest.mark.asyncio
    async def test_failed_write_keeps_previous_state(self, temp_dir):
        """Test that a failed document write leaves memory and disk unchanged."""
        store = JsonFileConversationStore(temp_dir)
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))

        with patch.object(store, "_write_document", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                await store.add_turn(conversation_id, make_turn(2))
            with pytest.raises(StoreError):
                await store.update_metadata(conversation_id, {"topic": "travel"})

        assert [t.id for t in await store.get_turns(conversation_id)] == ["turn-1"]
        assert await store.get_metadata(conversation_id) == {}
        reloaded = JsonFileConversationStore(temp_dir)
        assert [t.id for t in await reloaded.get_turns(conversation_id)] == ["turn-1"]

    @pytest.mark.asyncio
    async def test_failed_summary_write_rolls_back(self, temp_dir):
        """Test that a failed summary write keeps the turns active and stores no summary."""
        store = JsonFileConversationStore(temp_dir)
        conversation_id = await new_conversation(store)
        await store.add_turn(conversation_id, make_turn(1))
        await store.add_turn(conversation_id, make_turn(2))

        with patch.object(store, "_write_document", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                await store.add_summary_and_archive(
                    conversation_id, make_summary(["turn-1", "turn-2"])
                )

        assert await store.get_summaries(conversation_id) == []
        assert all(t.is_active for t in await store.get_turns(conversation_id))

        summary_id = await store.add_summary_and_archive(
            conversation_id, make_summary(["turn-1", "turn-2"])
        )
        assert [s.id for s in await store.get_summaries(conversation_id)] == [summary_id]

    @pytest.mark.asyncio
    async def test_failed_create_releases_room(self, temp_dir):
        """Test that a conversation whose first write fails is not left behind."""
        store = JsonFileConversationStore(temp_dir)

        with patch.object(store, "_write_document", side_effect=OSError("disk full")):
            with pytest.raises(StoreError):
                await new_conversation(store)

        assert await store.get_conversation_by_room("room-1") is None
        assert await store.get_recent_conversations() == []

    def test_corrupt_file_raises_store_error(self, temp_dir):
        """Test that an unreadable document surfaces as StoreError."""
        (temp_dir / "conv-broken.json").write_text("{not json")
        with pytest.raises(StoreError):
            JsonFileConversationStore(temp_dir)


# =============================================================================
# Summarizer Tests
# =============================================================================


class TestConversationSummarizer:
    """Tests for ConversationSummarizer."""

    @pytest.mark.asyncio
    async def test_summarize_stamps_provenance(self, summarizer):
        """Test that the summary records its source turns."""
        turns = [make_turn(i, conversation_id="conv-1") for i in (4, 5, 6)]

        summary = await summarizer.summarize(turns, start_index=3)

        assert summary.content == "The user and assistant discussed plans."
        assert summary.conversation_id == "conv-1"
        assert summary.original_turn_ids == ["turn-4", "turn-5", "turn-6"]
        assert summary.turn_count == 3
        assert summary.start_turn_index == 3
        assert summary.end_turn_index == 5
        assert summary.start_timestamp == turns[0].timestamp
        assert summary.end_timestamp == turns[-1].timestamp

    @pytest.mark.asyncio
    async def test_prompt_serializes_turns(self, summarizer, fake_llm):
        """Test the prompt sent to the language model."""
        turns = [make_turn(1, user_name="Ada"), make_turn(2)]

        await summarizer.summarize(turns)

        system_prompt, user_prompt, schema = fake_llm.calls[0]
        assert "faithful summary" in system_prompt
        assert (
            "Ada: Question 1\nAssistant: Answer 1\n\nUser: Question 2\nAssistant: Answer 2"
            in user_prompt
        )
        assert schema is SummaryOutput

    @pytest.mark.asyncio
    async def test_prompt_uses_attribution_options(self, fake_llm):
        """Test that the prompt labels speakers the same way prompt history does."""
        options = MemoryOptions(
            anchor_id="@owner:example.org", anchor_name="Owner", default_user_name="Guest"
        )
        summarizer = ConversationSummarizer(fake_llm, options=options)
        turns = [
            make_turn(1, user_id="@owner:example.org", user_name="Ada"),
            make_turn(2),
        ]

        await summarizer.summarize(turns)

        _, user_prompt, _ = fake_llm.calls[0]
        assert "Owner (Ada): Question 1" in user_prompt
        assert "Guest: Question 2" in user_prompt

    @pytest.mark.asyncio
    async def test_empty_slice_fails_fast(self, summarizer, fake_llm):
        """Test that summarizing nothing is a contract violation."""
        with pytest.raises(ValidationError):
            await summarizer.summarize([])
        assert fake_llm.calls == []

    @pytest.mark.asyncio
    async def test_out_of_order_slice_rejected(self, summarizer):
        """Test that turns must be chronological."""
        with pytest.raises(ValidationError):
            await summarizer.summarize([make_turn(2), make_turn(1)])

    @pytest.mark.asyncio
    async def test_language_model_failure(self):
        """Test that collaborator errors become SummarizationError."""
        summarizer = ConversationSummarizer(FakeLanguageModel(error=NetworkError("timed out")))

        with pytest.raises(SummarizationError):
            await summarizer.summarize([make_turn(1)])

    @pytest.mark.asyncio
    async def test_empty_content_is_failure(self):
        """Test that a blank summary is rejected."""
        summarizer = ConversationSummarizer(FakeLanguageModel(content="   "))

        with pytest.raises(SummarizationError):
            await summarizer.summarize([make_turn(1)])

    @pytest.mark.asyncio
    async def test_no_retry(self):
        """Test that the summarizer calls the model exactly once on failure."""
        llm = FakeLanguageModel(error=RuntimeError("boom"))
        summarizer = ConversationSummarizer(llm)

        with pytest.raises(SummarizationError):
            await summarizer.summarize([make_turn(1), make_turn(2)])
        assert len(llm.calls) == 1
