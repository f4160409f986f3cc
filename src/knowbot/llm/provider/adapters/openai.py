from typing import Any

import openai
import structlog
from openai import OpenAI

from knowbot.errors import GenerationError, GenerationTimeout
from knowbot.llm.provider.config import OpenAIConfig
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import (
    CompletionOptions,
    Message,
    ProviderType,
    TextResponse,
    TokenUsage,
)

_logger = structlog.get_logger()


def _message_to_provider_format(message: Message) -> dict[str, Any]:
    return {"role": message.role.value, "content": message.content}


class OpenAIProvider(AbstractProvider):
    """OpenAI (or any OpenAI-compatible endpoint) chat completion provider."""

    config: OpenAIConfig

    def __init__(self, config: OpenAIConfig) -> None:
        super().__init__(config)
        self.client = OpenAI(
            api_key=config.api_key,
            base_url=config.api_url,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

    def identify(self) -> ProviderType:
        return ProviderType.OPENAI

    def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> TextResponse:
        model, max_tokens, temperature = self._resolve(options)
        _logger.info("openai_request_starting", model=model, message_count=len(messages))

        params: dict[str, Any] = {
            "model": model,
            "messages": [_message_to_provider_format(msg) for msg in messages],
            "max_completion_tokens": max_tokens,
        }
        if temperature is not None:
            params["temperature"] = temperature

        try:
            response = self.client.chat.completions.create(**params)
        except openai.APITimeoutError as exc:
            raise GenerationTimeout(f"OpenAI request timed out: {exc}") from exc
        except openai.OpenAIError as exc:
            raise GenerationError(f"OpenAI request failed: {exc}") from exc

        choice = response.choices[0]
        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens if response.usage else 0,
            output_tokens=response.usage.completion_tokens if response.usage else 0,
        )

        _logger.info(
            "openai_response_finished",
            reason=choice.finish_reason,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return TextResponse(content=choice.message.content or "", usage=usage)
