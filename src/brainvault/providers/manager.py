"""
Provider manager for brainvault.

LiteLLM-backed implementation of the language-model collaborator.
Handles model resolution, structured output parsing and error mapping.
"""

import json
import logging
import re
from typing import Any

import litellm
from litellm import acompletion, completion_cost
from pydantic import BaseModel, ValidationError

from brainvault.config.schema import ProviderConfig
from brainvault.providers.exceptions import InvalidResponseError, to_provider_error
from brainvault.providers.models import Message, TokenUsage
from brainvault.providers.protocol import LanguageModel, SchemaT

logger = logging.getLogger(__name__)

# Configure LiteLLM defaults
litellm.drop_params = True  # Drop unsupported params per-provider

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class ProviderManager(LanguageModel):
    """
    Language-model access via LiteLLM.

    Sends a system/user prompt pair and, when an output schema is given,
    asks for a JSON object and validates it into that schema.
    """

    def __init__(
        self,
        config: ProviderConfig,
        model: str | None = None,
        max_tokens: int | None = None,
        timeout: float | None = None,
    ):
        """
        Initialize the provider manager.

        Args:
            config: Provider configuration.
            model: Model (name or alias) to use instead of the configured default.
            max_tokens: Maximum tokens in each response.
            timeout: Request timeout in seconds.
        """
        self.config = config
        self.model = model
        self.max_tokens = max_tokens
        self.timeout = timeout

    def _resolve_model(self, model: str | None) -> str:
        """
        Resolve model name from alias or default.

        Args:
            model: Model name, alias, or None for default.

        Returns:
            The fully resolved model identifier.
        """
        if model is None or model == "default":
            model = self.config.default

        if model in self.config.aliases:
            resolved = self.config.aliases[model]
            logger.debug(f"Resolved alias '{model}' to '{resolved}'")
            return resolved

        return model

    def _extract_provider(self, model: str) -> str:
        """Extract provider name from model string."""
        if "/" in model:
            return model.split("/")[0]
        return "unknown"

    def _build_system_prompt(self, system_prompt: str, output_schema: type[BaseModel] | None) -> str:
        if output_schema is None:
            return system_prompt
        schema = json.dumps(output_schema.model_json_schema())
        return (
            f"{system_prompt}\n\n"
            f"Respond with a single JSON object that matches this JSON schema:\n{schema}"
        )

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        output_schema: type[SchemaT] | None = None,
    ) -> tuple[SchemaT | str, TokenUsage]:
        """
        Send a completion request to the provider.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The content to operate on.
            output_schema: Pydantic model to validate a JSON answer against.

        Returns:
            Tuple of (validated schema instance or raw text, token usage).

        Raises:
            ProviderError: Mapped from the underlying LiteLLM failure.
            InvalidResponseError: If the answer does not match output_schema.
        """
        resolved_model = self._resolve_model(self.model)
        provider = self._extract_provider(resolved_model)
        logger.info(f"Completing with model: {resolved_model}")

        messages = [
            Message.system(self._build_system_prompt(system_prompt, output_schema)),
            Message.user(user_prompt),
        ]

        request_kwargs: dict[str, Any] = {
            "model": resolved_model,
            "messages": [msg.to_dict() for msg in messages],
            "temperature": self.config.temperature,
        }
        if self.max_tokens:
            request_kwargs["max_tokens"] = self.max_tokens
        if self.timeout:
            request_kwargs["timeout"] = self.timeout
        if output_schema is not None:
            request_kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await acompletion(**request_kwargs)
        except Exception as e:
            logger.error(f"Completion failed for {resolved_model}: {e}")
            raise to_provider_error(e, provider) from e

        usage = self._parse_usage(response)
        text = response.choices[0].message.content or ""

        if output_schema is None:
            return text, usage
        return self._parse_structured(text, output_schema, provider), usage

    def _parse_usage(self, response: Any) -> TokenUsage:
        """Extract token usage and cost from a LiteLLM response."""
        try:
            cost = completion_cost(completion_response=response)
        except Exception:
            cost = 0.0

        usage = getattr(response, "usage", None)
        if usage is None:
            return TokenUsage(cost=cost)

        return TokenUsage(
            input_tokens=usage.prompt_tokens or 0,
            output_tokens=usage.completion_tokens or 0,
            total_tokens=usage.total_tokens or 0,
            cost=cost,
        )

    def _parse_structured(
        self,
        text: str,
        output_schema: type[SchemaT],
        provider: str,
    ) -> SchemaT:
        """Parse a JSON answer (optionally fenced) into the output schema."""
        payload = text.strip()
        match = _FENCE_RE.match(payload)
        if match:
            payload = match.group(1)

        try:
            return output_schema.model_validate(json.loads(payload))
        except (json.JSONDecodeError, ValidationError) as e:
            raise InvalidResponseError(
                f"Model output does not match {output_schema.__name__}: {e}",
                provider,
            ) from e
