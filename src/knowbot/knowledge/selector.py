from collections.abc import Sequence

from knowbot.knowledge.config import RetrievalConfig
from knowbot.knowledge.types import RetrievalHit


def extract_terms(content: str, min_length: int) -> list[str]:
    return [word for word in content.lower().split() if len(word) >= min_length]


def select_diverse(hits: Sequence[RetrievalHit], config: RetrievalConfig) -> list[RetrievalHit]:
    """Pick up to ``max_context_chunks`` hits, skipping ones that repeat earlier ones.

    Hits are visited best score first.  A hit is admitted when its score is
    above ``high_confidence``, when more than ``novelty_threshold`` of its
    terms are not yet covered, or while fewer than ``min_selected`` hits
    have been admitted.
    """
    ranked = sorted(hits, key=lambda h: h.score, reverse=True)
    selected: list[RetrievalHit] = []
    seen_terms: set[str] = set()

    for hit in ranked:
        if len(selected) >= config.max_context_chunks:
            break

        terms = extract_terms(hit.content, config.min_term_length)
        new_terms = [term for term in terms if term not in seen_terms]
        novelty = len(new_terms) / max(len(terms), 1)

        if (
            hit.score > config.high_confidence
            or novelty > config.novelty_threshold
            or len(selected) < config.min_selected
        ):
            selected.append(hit)
            seen_terms.update(new_terms)

    return selected
