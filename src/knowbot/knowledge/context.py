from collections.abc import Mapping, Sequence

from knowbot.knowledge.types import ContextBlock, RetrievalHit, SourceCitation

_CHUNK_SEPARATOR = "\n\n---\n\n"


def _render_chunk(index: int, hit: RetrievalHit) -> str:
    source = hit.title or hit.source_name or "Knowledge Base"
    return f"[Chunk {index} | Relevance: {hit.score * 100:.1f}% | Source: {source}]\n{hit.content}"


def top_citations(
    candidates: Mapping[str, SourceCitation], max_citations: int
) -> list[SourceCitation]:
    ranked = sorted(candidates.values(), key=lambda c: c.score, reverse=True)
    return ranked[:max_citations]


def assemble_context(
    selected: Sequence[RetrievalHit],
    citation_candidates: Mapping[str, SourceCitation],
    max_citations: int = 3,
) -> ContextBlock:
    if not selected:
        return ContextBlock()

    formatted = _CHUNK_SEPARATOR.join(
        _render_chunk(i, hit) for i, hit in enumerate(selected, start=1)
    )
    text = f"KNOWLEDGE BASE CONTEXT:\n\n{formatted}\n\n(Total sources: {len(selected)})"

    return ContextBlock(
        hits=list(selected),
        text=text,
        citations=top_citations(citation_candidates, max_citations),
    )
