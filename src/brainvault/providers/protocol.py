"""Language-model collaborator protocol definition."""

from abc import ABC, abstractmethod
from typing import Any, TypeVar

from pydantic import BaseModel

from brainvault.providers.models import TokenUsage

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class LanguageModel(ABC):
    """Abstract base class for language-model collaborators.

    The memory subsystem only ever needs a single structured completion
    call; anything that can answer it (a LiteLLM-backed provider, a local
    model, a test double) implements this class.
    """

    @abstractmethod
    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[SchemaT] | None = None,
    ) -> tuple[SchemaT | str | Any, TokenUsage]:
        """Run one completion.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The content to operate on.
            output_schema: Pydantic model the answer must validate against.
                When omitted the raw text is returned.

        Returns:
            Tuple of (structured result or text, usage statistics).

        Raises:
            ProviderError: If the request fails or the output is malformed.
        """
        ...
