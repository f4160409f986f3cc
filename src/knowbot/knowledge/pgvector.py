import structlog
from sqlalchemy import text

from knowbot.embedding.provider import AbstractEmbeddingProvider
from knowbot.knowledge.search import AbstractKnowledgeSearch
from knowbot.knowledge.types import RetrievalHit, SearchScope
from knowbot.util.db import get_session

_logger = structlog.get_logger()

_SEARCH_SQL = text(
    """
    SELECT content, title, url, 1 - (embedding <=> CAST(:embedding AS vector)) AS similarity
    FROM knowledge_chunks
    WHERE chatbot_id = :chatbot_id
      AND source_id = :source_id
      AND embedding IS NOT NULL
    ORDER BY embedding <=> CAST(:embedding AS vector)
    LIMIT :limit
    """
)


class PgVectorSearch(AbstractKnowledgeSearch):
    """Cosine similarity search over ``knowledge_chunks`` with pgvector."""

    def __init__(self, embedding_provider: AbstractEmbeddingProvider) -> None:
        self._embedding_provider = embedding_provider

    def search(
        self,
        query: str,
        scope: SearchScope,
        limit: int,
        threshold: float,
    ) -> list[RetrievalHit]:
        query_embedding = self._embedding_provider.embed_query(query)

        with get_session() as session:
            rows = session.execute(
                _SEARCH_SQL,
                {
                    "embedding": str(query_embedding),
                    "chatbot_id": scope.chatbot_id,
                    "source_id": scope.source.id,
                    "limit": limit,
                },
            ).fetchall()

        hits = [
            RetrievalHit(
                content=row.content,
                score=float(row.similarity),
                source_id=scope.source.id,
                source_name=scope.source.name,
                url=row.url or "",
                title=row.title or "",
            )
            for row in rows
            if float(row.similarity) > threshold
        ]

        _logger.debug(
            "pgvector_search",
            query_preview=query[:80],
            source_id=scope.source.id,
            candidates=len(rows),
            matched=len(hits),
        )
        return hits
