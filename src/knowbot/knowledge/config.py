from dataclasses import dataclass
from typing import Any

from knowbot.embedding.config import (
    AbstractEmbeddingConfig,
    EmbeddingProviderType,
    OpenAIEmbeddingConfig,
)
from knowbot.util import PROJECT_ROOT, load_yaml_config

_KNOWLEDGE_CONFIG_PATH = PROJECT_ROOT / "config" / "knowledge.yaml"


@dataclass
class RetrievalConfig:
    limit: int = 8  # hits requested per (query, source) pair
    threshold: float = 0.55  # hits must score strictly above this
    max_context_chunks: int = 10
    max_citations: int = 3
    high_confidence: float = 0.70  # always admitted by the diversity selector
    novelty_threshold: float = 0.30
    min_selected: int = 3
    dedup_prefix_chars: int = 100
    min_term_length: int = 5
    search_result_limit: int = 10
    max_workers: int = 16
    search_timeout_seconds: float = 10.0


@dataclass
class KnowledgeStoreConfig:
    database_url: str
    embedding: AbstractEmbeddingConfig
    dimensions: int = 1536


def parse_retrieval_config(raw: dict[str, Any]) -> RetrievalConfig:
    defaults = RetrievalConfig()
    return RetrievalConfig(
        limit=int(raw.get("limit", defaults.limit)),
        threshold=float(raw.get("threshold", defaults.threshold)),
        max_context_chunks=int(raw.get("max_context_chunks", defaults.max_context_chunks)),
        max_citations=int(raw.get("max_citations", defaults.max_citations)),
        high_confidence=float(raw.get("high_confidence", defaults.high_confidence)),
        novelty_threshold=float(raw.get("novelty_threshold", defaults.novelty_threshold)),
        min_selected=int(raw.get("min_selected", defaults.min_selected)),
        dedup_prefix_chars=int(raw.get("dedup_prefix_chars", defaults.dedup_prefix_chars)),
        min_term_length=int(raw.get("min_term_length", defaults.min_term_length)),
        search_result_limit=int(raw.get("search_result_limit", defaults.search_result_limit)),
        max_workers=int(raw.get("max_workers", defaults.max_workers)),
        search_timeout_seconds=float(
            raw.get("search_timeout_seconds", defaults.search_timeout_seconds)
        ),
    )


def load_knowledge_store_config() -> KnowledgeStoreConfig:
    raw = load_yaml_config(
        _KNOWLEDGE_CONFIG_PATH,
        required_vars={"DATABASE_URL"},
    )
    return _parse_store_config(raw)


def _parse_store_config(raw: dict[str, Any]) -> KnowledgeStoreConfig:
    database_url = raw.get("database_url", "")
    if not database_url:
        raise ValueError("Missing 'database_url' in knowledge config")

    embedding_raw = raw.get("embedding")
    if not embedding_raw:
        raise ValueError("Missing 'embedding' section in knowledge config")

    return KnowledgeStoreConfig(
        database_url=database_url,
        embedding=_parse_embedding_config(embedding_raw),
        dimensions=int(embedding_raw.get("dimensions", 1536)),
    )


def _parse_embedding_config(raw: dict[str, Any]) -> AbstractEmbeddingConfig:
    provider_key = raw.get("provider", "openai")
    provider_type = EmbeddingProviderType(provider_key)

    model = raw.get("model", "")
    if not model:
        raise ValueError("Missing 'embedding.model' in knowledge config")

    provider_raw = raw.get(provider_key, {})

    match provider_type:
        case EmbeddingProviderType.OPENAI:
            return OpenAIEmbeddingConfig.from_envs(provider_raw, model)
