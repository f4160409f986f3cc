from knowbot.llm.provider.config import (
    AbstractProviderConfig,
    BedrockConfig,
    OpenAIConfig,
)
from knowbot.llm.provider.factory import ProviderFactory
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import (
    CompletionOptions,
    Message,
    MessageRole,
    ProviderType,
    TextResponse,
    TokenUsage,
)

__all__ = [
    "AbstractProvider",
    "AbstractProviderConfig",
    "BedrockConfig",
    "CompletionOptions",
    "Message",
    "MessageRole",
    "OpenAIConfig",
    "ProviderFactory",
    "ProviderType",
    "TextResponse",
    "TokenUsage",
]
