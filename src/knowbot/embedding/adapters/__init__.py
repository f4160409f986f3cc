from knowbot.embedding.adapters.openai import OpenAIEmbeddingProvider

__all__ = ["OpenAIEmbeddingProvider"]
