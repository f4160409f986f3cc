import json
from typing import Any

import boto3  # type: ignore[import-untyped]
import structlog
from botocore.config import Config  # type: ignore[import-untyped]
from botocore.exceptions import (  # type: ignore[import-untyped]
    BotoCoreError,
    ClientError,
    ConnectTimeoutError,
    ReadTimeoutError,
)

from knowbot.errors import GenerationError, GenerationTimeout
from knowbot.llm.provider.config import BedrockConfig
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import (
    CompletionOptions,
    Message,
    MessageRole,
    ProviderType,
    TextResponse,
    TokenUsage,
)

_logger = structlog.get_logger()


def _split_system(messages: list[Message]) -> tuple[str, list[dict[str, Any]]]:
    """Anthropic Messages API takes system prompts outside the message list."""
    system_parts = [m.content for m in messages if m.role == MessageRole.SYSTEM]
    conversation = [
        {"role": m.role.value, "content": m.content}
        for m in messages
        if m.role != MessageRole.SYSTEM
    ]
    return "\n\n".join(system_parts), conversation


class BedrockProvider(AbstractProvider):
    """AWS Bedrock (Anthropic models) provider implementation."""

    config: BedrockConfig

    def __init__(self, config: BedrockConfig) -> None:
        super().__init__(config)
        client_kwargs: dict[str, Any] = {
            "region_name": config.region,
            "config": Config(
                read_timeout=config.timeout_seconds,
                retries={"max_attempts": 0},
            ),
        }
        if config.api_url:
            client_kwargs["endpoint_url"] = config.api_url
        self.client = boto3.client("bedrock-runtime", **client_kwargs)

    def identify(self) -> ProviderType:
        return ProviderType.BEDROCK

    def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> TextResponse:
        model, max_tokens, temperature = self._resolve(options)
        system, bedrock_messages = _split_system(messages)

        request_body: dict[str, Any] = {
            "anthropic_version": self.config.anthropic_version,
            "messages": bedrock_messages,
            "max_tokens": max_tokens,
        }
        if system:
            request_body["system"] = system
        if temperature is not None:
            request_body["temperature"] = temperature

        try:
            response = self.client.invoke_model(
                modelId=model,
                body=json.dumps(request_body),
            )
        except (ReadTimeoutError, ConnectTimeoutError) as exc:
            raise GenerationTimeout(f"Bedrock request timed out: {exc}") from exc
        except (BotoCoreError, ClientError) as exc:
            raise GenerationError(f"Bedrock request failed: {exc}") from exc

        response_body = json.loads(response["body"].read())
        stop_reason = response_body.get("stop_reason")

        bedrock_usage = response_body.get("usage", {})
        usage = TokenUsage(
            input_tokens=bedrock_usage.get("input_tokens", 0),
            output_tokens=bedrock_usage.get("output_tokens", 0),
        )

        content = ""
        for block in response_body.get("content", []):
            if block.get("type") == "text":
                content += block.get("text", "")

        _logger.info(
            "bedrock_response_finished",
            reason=stop_reason,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
        )
        return TextResponse(content=content, usage=usage)
