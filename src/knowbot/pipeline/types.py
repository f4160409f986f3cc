from dataclasses import dataclass, field
from enum import StrEnum

from knowbot.chatbot.triggers import Trigger
from knowbot.knowledge.types import SourceCitation


class PipelineState(StrEnum):
    RECEIVED = "received"
    EXPANDING = "expanding"
    RETRIEVING = "retrieving"
    COMPOSING = "composing"
    GENERATING = "generating"
    FORMATTING = "formatting"
    PERSISTED = "persisted"
    FAILED = "failed"


class PromptMode(StrEnum):
    GROUNDED = "grounded"
    FALLBACK = "fallback"


@dataclass
class ComposedPrompt:
    mode: PromptMode
    text: str


@dataclass
class PipelineResult:
    answer_html: str
    conversation_id: str
    citations: list[SourceCitation] = field(default_factory=list)
    triggered_logics: list[Trigger] = field(default_factory=list)
    raw_answer: str = ""
    sources_used: int = 0
    mode: PromptMode = PromptMode.FALLBACK
