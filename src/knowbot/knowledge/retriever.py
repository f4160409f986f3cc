from collections.abc import Sequence
from concurrent.futures import Future, ThreadPoolExecutor, wait

import structlog

from knowbot.errors import RetrievalBackendError
from knowbot.knowledge.config import RetrievalConfig
from knowbot.knowledge.search import AbstractKnowledgeSearch
from knowbot.knowledge.types import (
    KnowledgeSource,
    RetrievalHit,
    RetrievalOutcome,
    SearchScope,
    SourceCitation,
    SourceSearchResult,
)

_logger = structlog.get_logger()


class MultiSourceRetriever:
    """Runs every query against every knowledge source and merges the hits.

    Searches are issued concurrently, one task per (query, source) pair.
    Merging happens afterwards in query-major, source-minor order, so the
    first query (the user's own words) wins deduplication ties against
    its paraphrases.  A failing or slow source is logged and skipped.
    """

    def __init__(self, search: AbstractKnowledgeSearch, config: RetrievalConfig) -> None:
        self._search = search
        self._config = config

    def retrieve(
        self,
        chatbot_id: str,
        queries: Sequence[str],
        sources: Sequence[KnowledgeSource],
    ) -> RetrievalOutcome:
        if not queries or not sources:
            return RetrievalOutcome()

        results = self._fan_out(
            chatbot_id, queries, sources, self._config.limit, self._config.threshold
        )
        outcome = self._merge(results, self._config.threshold)

        _logger.info(
            "knowledge_retrieval",
            chatbot_id=chatbot_id,
            queries=len(queries),
            sources=len(sources),
            failed=len(outcome.failures),
            hits=len(outcome.hits),
            citation_candidates=len(outcome.citation_candidates),
        )
        return outcome

    def search(
        self,
        chatbot_id: str,
        query: str,
        sources: Sequence[KnowledgeSource],
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[RetrievalHit]:
        """Single-query search across all sources, without expansion or selection."""
        if not sources:
            return []

        per_source_limit = limit or self._config.limit
        threshold = threshold if threshold is not None else self._config.threshold

        results = self._fan_out(chatbot_id, [query], sources, per_source_limit, threshold)
        hits = sorted(
            self._merge(results, threshold).hits, key=lambda h: h.score, reverse=True
        )
        return hits[: limit or self._config.search_result_limit]

    def _fan_out(
        self,
        chatbot_id: str,
        queries: Sequence[str],
        sources: Sequence[KnowledgeSource],
        limit: int,
        threshold: float,
    ) -> list[SourceSearchResult]:
        pairs = [(query, source) for query in queries for source in sources]
        workers = max(1, min(len(pairs), self._config.max_workers))

        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="knowledge-search")
        try:
            futures: list[Future[SourceSearchResult]] = [
                executor.submit(self._search_one, chatbot_id, query, source, limit, threshold)
                for query, source in pairs
            ]
            done, _ = wait(futures, timeout=self._config.search_timeout_seconds)

            results: list[SourceSearchResult] = []
            for (query, source), future in zip(pairs, futures, strict=True):
                if future in done:
                    results.append(future.result())
                    continue

                future.cancel()
                error = RetrievalBackendError(
                    "knowledge search timed out", source_id=source.id, query=query
                )
                _log_source_failure(error, source)
                results.append(SourceSearchResult(query=query, source=source, error=error))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        return results

    def _search_one(
        self,
        chatbot_id: str,
        query: str,
        source: KnowledgeSource,
        limit: int,
        threshold: float,
    ) -> SourceSearchResult:
        scope = SearchScope(chatbot_id=chatbot_id, source=source)
        try:
            hits = self._search.search(query, scope, limit, threshold)
        except Exception as exc:
            error = RetrievalBackendError(str(exc), source_id=source.id, query=query)
            error.__cause__ = exc
            _log_source_failure(error, source)
            return SourceSearchResult(query=query, source=source, error=error)

        _logger.debug(
            "knowledge_source_searched",
            source_id=source.id,
            query_preview=query[:80],
            hits=len(hits),
        )
        return SourceSearchResult(query=query, source=source, hits=hits)

    def _merge(self, results: list[SourceSearchResult], threshold: float) -> RetrievalOutcome:
        outcome = RetrievalOutcome()
        seen: set[str] = set()
        prefix = self._config.dedup_prefix_chars

        for result in results:
            if not result.ok:
                outcome.failures.append(result)
                continue

            for hit in result.hits:
                if hit.score <= threshold:
                    continue

                key = hit.content[:prefix]
                if key in seen:
                    continue
                seen.add(key)
                outcome.hits.append(hit)

                if not hit.url:
                    continue
                existing = outcome.citation_candidates.get(hit.url)
                if existing is None or hit.score > existing.score:
                    outcome.citation_candidates[hit.url] = SourceCitation(
                        title=hit.title or hit.source_name,
                        url=hit.url,
                        score=hit.score,
                    )

        return outcome


def _log_source_failure(error: RetrievalBackendError, source: KnowledgeSource) -> None:
    _logger.warning(
        "knowledge_source_failed",
        source_id=error.source_id,
        source_name=source.name,
        query_preview=error.query[:80],
        error=str(error),
    )
