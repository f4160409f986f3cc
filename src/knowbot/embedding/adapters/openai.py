import structlog
from openai import OpenAI

from knowbot.embedding.config import OpenAIEmbeddingConfig
from knowbot.embedding.provider import AbstractEmbeddingProvider

_logger = structlog.get_logger()


class OpenAIEmbeddingProvider(AbstractEmbeddingProvider):
    config: OpenAIEmbeddingConfig

    def __init__(self, config: OpenAIEmbeddingConfig) -> None:
        super().__init__(config)
        self._client = OpenAI(
            api_key=config.api_key,
            base_url=config.api_url,
        )

    def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        _logger.debug("embedding_request", count=len(texts), model=self.config.model)
        response = self._client.embeddings.create(
            model=self.config.model,
            input=texts,
        )
        return [item.embedding for item in response.data]
