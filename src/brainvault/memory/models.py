"""
Memory models for brainvault.

Defines conversations, turns, summaries and the tiered-memory
configuration.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Literal, TypeVar

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError

from brainvault.memory.exceptions import ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


def new_id(prefix: str) -> str:
    """Generate a short prefixed identifier, e.g. ``turn-1a2b3c4d5e6f``."""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def parse_model(model_cls: type[ModelT], data: Any, what: str) -> ModelT:
    """Validate data into model_cls, raising the memory ValidationError.

    Args:
        model_cls: Pydantic model to validate against.
        data: A model instance or a mapping.
        what: Human-readable name used in the error message.

    Returns:
        Validated model instance.

    Raises:
        ValidationError: If the data does not validate.
    """
    if isinstance(data, model_cls):
        return data
    try:
        return model_cls.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(f"Invalid {what}: {e}") from e


class InterfaceType(str, Enum):
    """Channel a conversation arrives through."""

    CLI = "cli"
    MATRIX = "matrix"


# =============================================================================
# Turn tiers
# =============================================================================


class ActiveTier(BaseModel):
    """Turn counts against the active-tier size limit."""

    model_config = ConfigDict(frozen=True)

    state: Literal["active"] = "active"


class ArchivedTier(BaseModel):
    """Turn was compacted into the referenced summary."""

    model_config = ConfigDict(frozen=True)

    state: Literal["archived"] = "archived"
    summary_id: str = Field(min_length=1)


TurnTier = Annotated[ActiveTier | ArchivedTier, Field(discriminator="state")]


# =============================================================================
# Conversations and turns
# =============================================================================


class ConversationTurn(BaseModel):
    """A single query/response exchange in a conversation.

    Content is immutable once stored; the only later change is the
    one-way tier transition from ActiveTier to ArchivedTier.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("turn"))
    conversation_id: str | None = None
    timestamp: datetime = Field(default_factory=datetime.now)

    query: str = Field(min_length=1)
    response: str

    user_id: str | None = None
    user_name: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    tier: TurnTier = Field(default_factory=ActiveTier)

    @property
    def is_active(self) -> bool:
        """Whether the turn is still in the active tier."""
        return isinstance(self.tier, ActiveTier)

    @property
    def is_archived(self) -> bool:
        """Whether the turn has been compacted into a summary."""
        return isinstance(self.tier, ArchivedTier)

    @property
    def summary_id(self) -> str | None:
        """ID of the summary holding this turn, if archived."""
        return self.tier.summary_id if isinstance(self.tier, ArchivedTier) else None

    def archive(self, summary_id: str) -> "ConversationTurn":
        """Return a copy of this turn moved to the archived tier."""
        return self.model_copy(update={"tier": ArchivedTier(summary_id=summary_id)})


class Conversation(BaseModel):
    """Conversation header; turns and summaries are stored alongside it."""

    id: str = Field(default_factory=lambda: new_id("conv"))
    interface_type: InterfaceType
    room_id: str = Field(min_length=1)
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)


class NewConversation(BaseModel):
    """Data needed to create a conversation."""

    id: str | None = None
    interface_type: InterfaceType = InterfaceType.CLI
    room_id: str = Field(min_length=1)
    created_at: datetime | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)


class ConversationInfo(BaseModel):
    """Listing entry for a conversation."""

    id: str
    interface_type: InterfaceType
    room_id: str
    created_at: datetime
    updated_at: datetime
    turn_count: int = 0
    metadata: dict[str, Any] = Field(default_factory=dict)

    model_config = ConfigDict(use_enum_values=True)


class SearchCriteria(BaseModel):
    """Filters for finding conversations."""

    interface_type: InterfaceType | None = None
    room_id: str | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    query: str | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)


class TurnFilter(BaseModel):
    """Filters for reading turns."""

    tier: Literal["active", "archived"] | None = None
    limit: int | None = Field(default=None, ge=0)
    offset: int = Field(default=0, ge=0)


# =============================================================================
# Summaries
# =============================================================================


class SummaryProvenance(BaseModel):
    """Exact source turns a summary was built from."""

    model_config = ConfigDict(frozen=True)

    original_turn_ids: list[str] = Field(min_length=1)


class ConversationSummary(BaseModel):
    """A compacted representation of a contiguous block of turns."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: new_id("summ"))
    conversation_id: str | None = None
    content: str
    created_at: datetime = Field(default_factory=datetime.now)

    # Positions in the conversation's full chronological turn list
    start_turn_index: int = Field(ge=0)
    end_turn_index: int = Field(ge=0)

    start_timestamp: datetime
    end_timestamp: datetime
    turn_count: int = Field(ge=1)

    provenance: SummaryProvenance
    metadata: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _check_ranges(self) -> "ConversationSummary":
        if self.end_turn_index < self.start_turn_index:
            raise ValueError("end_turn_index must not precede start_turn_index")
        if self.end_timestamp < self.start_timestamp:
            raise ValueError("end_timestamp must not precede start_timestamp")
        if self.turn_count != len(self.provenance.original_turn_ids):
            raise ValueError("turn_count must match the number of source turn ids")
        return self

    @property
    def original_turn_ids(self) -> list[str]:
        """IDs of the turns this summary was built from."""
        return list(self.provenance.original_turn_ids)


class TieredHistory(BaseModel):
    """Tier-split view of a conversation, each list chronological."""

    active_turns: list[ConversationTurn] = Field(default_factory=list)
    summaries: list[ConversationSummary] = Field(default_factory=list)
    archived_turns: list[ConversationTurn] = Field(default_factory=list)


# =============================================================================
# Configuration
# =============================================================================


class TieredMemoryConfig(BaseModel):
    """Compaction and prompt-assembly settings."""

    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    max_active_turns: int = Field(default=10, ge=1, strict=True)
    summary_turn_count: int = Field(default=5, ge=1, strict=True)
    max_tokens: int = Field(default=2000, ge=0, strict=True)

    @model_validator(mode="after")
    def _check_summary_turn_count(self) -> "TieredMemoryConfig":
        if self.summary_turn_count > self.max_active_turns:
            raise ValueError(
                f"summary_turn_count ({self.summary_turn_count}) must not exceed "
                f"max_active_turns ({self.max_active_turns})"
            )
        return self


class MemoryOptions(BaseModel):
    """Turn attribution defaults applied by the memory service."""

    default_user_id: str = "cli-user"
    default_user_name: str = "User"
    anchor_id: str | None = None
    anchor_name: str = "Anchor"

    def label_for(self, turn: ConversationTurn) -> str:
        """Speaker label for a turn; the anchor user renders as ``"<anchor_name> (<name>)"``."""
        name = turn.user_name or self.default_user_name
        if self.anchor_id and turn.user_id == self.anchor_id:
            return f"{self.anchor_name} ({name})"
        return name
