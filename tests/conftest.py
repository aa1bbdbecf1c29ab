"""
Pytest configuration and fixtures for brainvault tests.
"""

import tempfile
from collections.abc import Generator
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

import pytest

from brainvault.memory import (
    ConversationSummarizer,
    ConversationTurn,
    InMemoryConversationStore,
    MemoryOptions,
    TieredMemoryManager,
)
from brainvault.providers import LanguageModel, TokenUsage

BASE_TIME = datetime(2024, 5, 1, 9, 0, 0)


class FakeLanguageModel(LanguageModel):
    """Language model double that records calls and returns canned summaries."""

    def __init__(
        self,
        content: str = "The user and assistant discussed plans.",
        error: Exception | None = None,
    ):
        self.content = content
        self.error = error
        self.calls: list[tuple[str, str, Any]] = []

    async def complete(self, system_prompt, user_prompt, output_schema=None):
        self.calls.append((system_prompt, user_prompt, output_schema))
        if self.error is not None:
            raise self.error
        usage = TokenUsage(input_tokens=120, output_tokens=30)
        if output_schema is None:
            return self.content, usage
        return output_schema(content=self.content), usage


def make_turn(index: int, **overrides: Any) -> ConversationTurn:
    """Build a turn whose timestamp orders it by index."""
    data: dict[str, Any] = {
        "id": f"turn-{index}",
        "timestamp": BASE_TIME + timedelta(minutes=index),
        "query": f"Question {index}",
        "response": f"Answer {index}",
    }
    data.update(overrides)
    return ConversationTurn(**data)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mock_brainvault_home(temp_dir: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point BRAINVAULT_HOME at a temporary directory."""
    home = temp_dir / ".brainvault"
    (home / "profiles").mkdir(parents=True)
    (home / "memory").mkdir()
    monkeypatch.setenv("BRAINVAULT_HOME", str(home))
    return home


@pytest.fixture
def fake_llm() -> FakeLanguageModel:
    """Provide a fake language model."""
    return FakeLanguageModel()


@pytest.fixture
def store() -> InMemoryConversationStore:
    """Provide an empty in-memory conversation store."""
    return InMemoryConversationStore()


@pytest.fixture
def summarizer(fake_llm: FakeLanguageModel) -> ConversationSummarizer:
    """Provide a summarizer backed by the fake language model."""
    return ConversationSummarizer(fake_llm)


@pytest.fixture
def manager(
    store: InMemoryConversationStore,
    summarizer: ConversationSummarizer,
) -> TieredMemoryManager:
    """Provide a manager configured with max_active_turns=5, summary_turn_count=3."""
    return TieredMemoryManager(
        store,
        summarizer,
        config={"max_active_turns": 5, "summary_turn_count": 3, "max_tokens": 2000},
        options=MemoryOptions(anchor_id="@owner:example.org", anchor_name="Owner"),
    )


@pytest.fixture
def sample_config() -> dict:
    """Provide a sample configuration dictionary."""
    return {
        "providers": {
            "default": "openai/gpt-4o-mini",
            "aliases": {"summary": "anthropic/claude-3-haiku-20240307"},
        },
        "memory": {
            "max_active_turns": 8,
            "summary_turn_count": 4,
            "max_tokens": 1500,
            "summary_model": "summary",
        },
    }
