from knowbot.errors import (
    ConfigurationNotFound,
    ConversationStoreError,
    ExpansionError,
    GenerationError,
    GenerationTimeout,
    PipelineError,
    RetrievalBackendError,
    TriggerParseError,
)
from knowbot.pipeline.orchestrator import Pipeline
from knowbot.pipeline.types import PipelineResult, PipelineState, PromptMode

__all__ = [
    "ConfigurationNotFound",
    "ConversationStoreError",
    "ExpansionError",
    "GenerationError",
    "GenerationTimeout",
    "Pipeline",
    "PipelineError",
    "PipelineResult",
    "PipelineState",
    "PromptMode",
    "RetrievalBackendError",
    "TriggerParseError",
]
