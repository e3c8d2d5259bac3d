"""OpenAI chat completion client used for requirement extraction."""

import logging
from typing import Optional

from openai import AsyncOpenAI, OpenAIError

from redyce.config.configuration import OpenAIConfig
from redyce.models.ai import AICompletion, AIPrompt, CompletionMetadata

logger = logging.getLogger(__name__)

DEFAULT_TEMPERATURE = 0.7


class AICompletionError(Exception):
    """Custom exception for AI completion failures."""

    pass


class AICompletionClient:
    """Async chat completion client with lazy OpenAI client creation."""

    def __init__(self, config: OpenAIConfig, client: Optional[AsyncOpenAI] = None):
        """Initialize the completion client.

        Args:
            config: OpenAI configuration (API key and default model).
            client: Optional pre-built AsyncOpenAI client.
        """
        self._config = config
        self._client = client

    def _get_client(self) -> AsyncOpenAI:
        """Get or create the async OpenAI client."""
        if self._client is None:
            if not self._config.api_key:
                raise AICompletionError("OpenAI API key not configured")
            self._client = AsyncOpenAI(api_key=self._config.api_key)
        return self._client

    async def generate_response(
        self,
        prompt: AIPrompt,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        json_response: bool = False,
    ) -> AICompletion:
        """
        Send a prompt and return the generated text with token usage.

        Args:
            prompt: System and user messages.
            model: Model override, defaults to the configured model.
            temperature: Sampling temperature, defaults to 0.7.
            max_tokens: Completion token cap.
            json_response: Ask the model for a JSON object.

        Returns:
            AICompletion with content and metadata.

        Raises:
            AICompletionError: If the call fails or returns no content.
        """
        messages = []
        if prompt.system:
            messages.append({"role": "system", "content": prompt.system})
        messages.append({"role": "user", "content": prompt.user})

        request = {
            "model": model or self._config.model,
            "messages": messages,
            "temperature": DEFAULT_TEMPERATURE if temperature is None else temperature,
        }
        if max_tokens is not None:
            request["max_tokens"] = max_tokens
        if json_response:
            request["response_format"] = {"type": "json_object"}

        try:
            completion = await self._get_client().chat.completions.create(**request)
        except OpenAIError as e:
            raise AICompletionError(f"AI generation failed: {e}") from e

        choice = completion.choices[0] if completion.choices else None
        if choice is None or not choice.message.content:
            raise AICompletionError("AI generation failed: no response from AI")

        usage = completion.usage
        metadata = CompletionMetadata(
            model=completion.model,
            input_tokens=usage.prompt_tokens if usage else None,
            output_tokens=usage.completion_tokens if usage else None,
            finish_reason=choice.finish_reason,
        )
        logger.debug(
            f"Completion from {metadata.model}: {metadata.input_tokens} in, "
            f"{metadata.output_tokens} out ({metadata.finish_reason})"
        )

        return AICompletion(content=choice.message.content, metadata=metadata)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.close()
            self._client = None
