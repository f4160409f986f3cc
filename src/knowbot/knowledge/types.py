from dataclasses import dataclass, field


@dataclass(frozen=True)
class KnowledgeSource:
    id: str
    name: str


@dataclass(frozen=True)
class SearchScope:
    chatbot_id: str
    source: KnowledgeSource


@dataclass(frozen=True)
class RetrievalHit:
    content: str
    score: float  # cosine similarity in [0, 1], higher is more similar
    source_id: str
    source_name: str
    url: str = ""
    title: str = ""


@dataclass(frozen=True)
class SourceCitation:
    title: str
    url: str
    score: float


@dataclass
class SourceSearchResult:
    """Outcome of one (query, source) search, kept even when it failed."""

    query: str
    source: KnowledgeSource
    hits: list[RetrievalHit] = field(default_factory=list)
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class RetrievalOutcome:
    hits: list[RetrievalHit] = field(default_factory=list)
    citation_candidates: dict[str, SourceCitation] = field(default_factory=dict)
    failures: list[SourceSearchResult] = field(default_factory=list)


@dataclass
class ContextBlock:
    hits: list[RetrievalHit] = field(default_factory=list)
    text: str = ""
    citations: list[SourceCitation] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.hits
