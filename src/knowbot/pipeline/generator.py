from concurrent.futures import ThreadPoolExecutor

import structlog

from knowbot.chatbot.config import ChatbotConfig
from knowbot.errors import GenerationError, GenerationTimeout
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import CompletionOptions, Message, MessageRole
from knowbot.pipeline.config import GenerationConfig

_logger = structlog.get_logger()


class AnswerGenerator:
    """Single, time-boxed call to the generation backend. No retries."""

    def __init__(self, provider: AbstractProvider, config: GenerationConfig) -> None:
        self._provider = provider
        self._config = config

    def options_for(self, chatbot: ChatbotConfig) -> CompletionOptions:
        return CompletionOptions(
            model=chatbot.model,
            max_tokens=chatbot.max_tokens or self._config.max_tokens,
            temperature=(
                chatbot.temperature
                if chatbot.temperature is not None
                else self._config.temperature
            ),
        )

    def generate(self, prompt: str, chatbot: ChatbotConfig) -> str:
        options = self.options_for(chatbot)
        messages = [Message(role=MessageRole.USER, content=prompt)]

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="answer-generation")
        try:
            future = executor.submit(self._provider.complete, messages, options)
            response = future.result(timeout=self._config.timeout_seconds)
        except TimeoutError as exc:
            raise GenerationTimeout(
                f"no answer within {self._config.timeout_seconds}s"
            ) from exc
        except GenerationError:
            raise
        except Exception as exc:
            raise GenerationError(f"generation backend failed: {exc}") from exc
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        answer = response.content.strip()
        if not answer:
            raise GenerationError("generation backend returned an empty answer")

        _logger.info(
            "answer_generated",
            model=options.model or self._provider.config.model,
            length=len(answer),
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        return answer
