from abc import ABC, abstractmethod

from knowbot.llm.provider.config import AbstractProviderConfig
from knowbot.llm.provider.types import CompletionOptions, Message, ProviderType, TextResponse


class AbstractProvider(ABC):
    def __init__(self, config: AbstractProviderConfig) -> None:
        self.config = config
        self.enabled = config.enabled

    @abstractmethod
    def identify(self) -> ProviderType: ...

    @abstractmethod
    def complete(
        self,
        messages: list[Message],
        options: CompletionOptions | None = None,
    ) -> TextResponse:
        """
        Send a conversation to the LLM server and return its text answer.

        Args:
            messages: Conversation to complete
            options: Model, token and temperature overrides for this call

        Raises:
            GenerationTimeout: the backend did not answer in time
            GenerationError: any other backend failure
        """
        ...

    def _resolve(self, options: CompletionOptions | None) -> tuple[str, int, float | None]:
        options = options or CompletionOptions()
        model = options.model or self.config.model
        max_tokens = options.max_tokens or self.config.max_tokens
        temperature = (
            options.temperature if options.temperature is not None else self.config.temperature
        )
        return model, max_tokens, temperature
