from abc import ABC, abstractmethod

from knowbot.knowledge.types import RetrievalHit, SearchScope


class AbstractKnowledgeSearch(ABC):
    """Similarity search over one knowledge source of one chatbot."""

    @abstractmethod
    def search(
        self,
        query: str,
        scope: SearchScope,
        limit: int,
        threshold: float,
    ) -> list[RetrievalHit]:
        """Return at most *limit* hits scoring above *threshold*, best first."""
        ...
