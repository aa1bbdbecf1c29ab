"""
Pydantic configuration schema for brainvault.

This module defines all configuration models with validation.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

DEFAULT_MODEL = "anthropic/claude-sonnet-4-20250514"


# =============================================================================
# Provider Configuration
# =============================================================================


class ProviderConfig(BaseModel):
    """Provider and model configuration."""

    model_config = ConfigDict(extra="allow")

    default: str = DEFAULT_MODEL
    aliases: dict[str, str] = Field(default_factory=dict)
    temperature: float = Field(default=0.2, ge=0.0, le=2.0)


# =============================================================================
# Memory Configuration
# =============================================================================


class MemoryConfig(BaseModel):
    """Tiered conversation memory configuration."""

    model_config = ConfigDict(extra="allow")

    # Compaction thresholds
    max_active_turns: int = Field(default=10, ge=1)
    summary_turn_count: int = Field(default=5, ge=1)

    # Prompt assembly
    max_tokens: int = Field(default=2000, ge=0)
    token_estimator: Literal["approximate", "tiktoken"] = "approximate"

    # Storage backend
    store: Literal["memory", "json"] = "memory"
    # None stores under $BRAINVAULT_HOME/memory/conversations
    store_path: str | None = None

    # Summarization
    summary_model: str | None = None
    summary_max_tokens: int = Field(default=500, ge=1)
    summary_timeout: float | None = Field(default=60.0, gt=0)

    # Attribution
    anchor_id: str | None = None
    anchor_name: str = "Anchor"
    default_user_id: str = "cli-user"
    default_user_name: str = "User"

    @model_validator(mode="after")
    def _check_summary_turn_count(self) -> "MemoryConfig":
        if self.summary_turn_count > self.max_active_turns:
            raise ValueError(
                f"summary_turn_count ({self.summary_turn_count}) must not exceed "
                f"max_active_turns ({self.max_active_turns})"
            )
        return self


# =============================================================================
# General Configuration
# =============================================================================


class GeneralConfig(BaseModel):
    """General settings configuration."""

    model_config = ConfigDict(extra="allow")

    default_profile: str | None = None


# =============================================================================
# Root Configuration Model
# =============================================================================


class Config(BaseModel):
    """
    Root configuration model for brainvault.

    Configuration can be loaded from YAML files and environment
    variables, merged in order of priority.
    """

    model_config = ConfigDict(extra="allow")

    providers: ProviderConfig = Field(default_factory=ProviderConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)
    general: GeneralConfig = Field(default_factory=GeneralConfig)

    def get_summary_model(self) -> str:
        """Get the model used for summaries, resolving aliases."""
        model = self.memory.summary_model or self.providers.default
        return self.providers.aliases.get(model, model)
