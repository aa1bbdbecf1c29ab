"""
Conversation summarizer for brainvault.

Condenses a contiguous, chronologically ordered slice of turns into one
summary record that carries full provenance back to its source turns.
"""

import logging
from collections.abc import Sequence

from pydantic import BaseModel, Field

from brainvault.memory.exceptions import SummarizationError, ValidationError
from brainvault.memory.models import (
    ConversationSummary,
    ConversationTurn,
    MemoryOptions,
    SummaryProvenance,
)
from brainvault.providers.protocol import LanguageModel

logger = logging.getLogger(__name__)


class SummaryOutput(BaseModel):
    """Structured answer requested from the language model."""

    content: str = Field(description="The condensed summary of the exchanges.")


def format_turn(turn: ConversationTurn, user_label: str) -> str:
    """Render a turn as an attributed query/response pair."""
    return f"{user_label}: {turn.query}\nAssistant: {turn.response}"


class ConversationSummarizer:
    """Summarizes turns through a language-model collaborator.

    The summarizer never retries; any collaborator failure is reported
    to the caller as a SummarizationError.
    """

    SYSTEM_PROMPT = """You condense the following exchanges between a user and an assistant into one faithful summary.
The summary should:
- Stay under {max_words} words
- Keep the main topics, decisions, facts and open action items
- Follow the order in which things were discussed
- Use a neutral, third-person voice
- Add no commentary or information that is not in the exchanges"""

    USER_PROMPT = """Summarize the following conversation:

{conversation}"""

    def __init__(
        self,
        llm: LanguageModel,
        max_words: int = 250,
        options: MemoryOptions | None = None,
    ):
        """Initialize the summarizer.

        Args:
            llm: Language-model collaborator used to produce summary text.
            max_words: Soft length limit given to the model.
            options: Attribution settings used to label speakers in the prompt.
        """
        self.llm = llm
        self.max_words = max_words
        self.options = options or MemoryOptions()

    def _validate_slice(self, turns: Sequence[ConversationTurn]) -> None:
        if not turns:
            raise ValidationError("Cannot summarize an empty slice of turns")

        for previous, current in zip(turns, turns[1:]):
            if current.timestamp < previous.timestamp:
                raise ValidationError(
                    f"Turns must be in chronological order: {current.id} precedes {previous.id}"
                )

        ids = [turn.id for turn in turns]
        if len(set(ids)) != len(ids):
            raise ValidationError("Cannot summarize a slice with duplicate turn ids")

    def build_prompt(self, turns: Sequence[ConversationTurn]) -> str:
        """Serialize turns into the user prompt sent to the model."""
        conversation = "\n\n".join(
            format_turn(turn, self.options.label_for(turn)) for turn in turns
        )
        return self.USER_PROMPT.format(conversation=conversation)

    async def summarize(
        self,
        turns: Sequence[ConversationTurn],
        start_index: int = 0,
    ) -> ConversationSummary:
        """Summarize a slice of turns.

        Args:
            turns: Non-empty, chronologically ordered, contiguous turns.
            start_index: Position of the first turn in the conversation's
                full chronological turn list.

        Returns:
            Summary stamped with index range, timestamp range, count and
            source turn ids.

        Raises:
            ValidationError: If the slice is empty or out of order.
            SummarizationError: If the language model fails or returns no content.
        """
        turns = list(turns)
        self._validate_slice(turns)
        if start_index < 0:
            raise ValidationError(f"start_index must be non-negative, got {start_index}")
        conversation_id = turns[0].conversation_id

        try:
            result, usage = await self.llm.complete(
                self.SYSTEM_PROMPT.format(max_words=self.max_words),
                self.build_prompt(turns),
                SummaryOutput,
            )
        except Exception as e:
            raise SummarizationError(
                f"Language model failed to summarize {len(turns)} turns: {e}",
                conversation_id,
            ) from e

        content = result.content.strip() if isinstance(result, SummaryOutput) else ""
        if not content:
            raise SummarizationError(
                "Language model returned an empty summary",
                conversation_id,
            )

        logger.debug(
            f"Summarized {len(turns)} turns using {usage.total_tokens} tokens"
        )

        return ConversationSummary(
            conversation_id=conversation_id,
            content=content,
            start_turn_index=start_index,
            end_turn_index=start_index + len(turns) - 1,
            start_timestamp=turns[0].timestamp,
            end_timestamp=turns[-1].timestamp,
            turn_count=len(turns),
            provenance=SummaryProvenance(original_turn_ids=[turn.id for turn in turns]),
        )
