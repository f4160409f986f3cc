from knowbot.knowledge.config import RetrievalConfig, parse_retrieval_config
from knowbot.knowledge.context import assemble_context
from knowbot.knowledge.retriever import MultiSourceRetriever
from knowbot.knowledge.search import AbstractKnowledgeSearch
from knowbot.knowledge.selector import select_diverse
from knowbot.knowledge.types import (
    ContextBlock,
    KnowledgeSource,
    RetrievalHit,
    RetrievalOutcome,
    SearchScope,
    SourceCitation,
)

__all__ = [
    "AbstractKnowledgeSearch",
    "ContextBlock",
    "KnowledgeSource",
    "MultiSourceRetriever",
    "RetrievalConfig",
    "RetrievalHit",
    "RetrievalOutcome",
    "SearchScope",
    "SourceCitation",
    "assemble_context",
    "parse_retrieval_config",
    "select_diverse",
]
