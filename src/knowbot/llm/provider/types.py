from dataclasses import dataclass
from enum import StrEnum


class ProviderType(StrEnum):
    OPENAI = "openai"
    BEDROCK = "bedrock"


class MessageRole(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass
class Message:
    role: MessageRole
    content: str


@dataclass
class TokenUsage:
    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class TextResponse:
    content: str
    usage: TokenUsage


@dataclass
class CompletionOptions:
    """Per-call overrides; ``None`` falls back to the provider config."""

    model: str | None = None
    max_tokens: int | None = None
    temperature: float | None = None
