"""Typed failures of the answering pipeline.

Only :class:`ConfigurationNotFound`, :class:`ConversationStoreError` and
:class:`GenerationError` (with its :class:`GenerationTimeout` subclass)
ever reach the caller of a turn.  The remaining types mark recovered
failures: they are raised and caught inside the stage that owns them and
only show up in the logs.
"""


class PipelineError(Exception):
    public_message = "Something went wrong while answering. Please try again."

    def __init__(self, message: str, *, conversation_id: str | None = None) -> None:
        super().__init__(message)
        self.conversation_id = conversation_id


class ConfigurationNotFound(PipelineError):
    public_message = "This chatbot is not available."


class ConversationStoreError(PipelineError):
    public_message = "We could not load this conversation. Please try again."


class RetrievalBackendError(PipelineError):
    def __init__(self, message: str, *, source_id: str, query: str) -> None:
        super().__init__(message)
        self.source_id = source_id
        self.query = query


class ExpansionError(PipelineError):
    pass


class TriggerParseError(PipelineError):
    def __init__(self, message: str, *, trigger_id: str) -> None:
        super().__init__(message)
        self.trigger_id = trigger_id


class GenerationError(PipelineError):
    public_message = "The assistant could not generate an answer. Please try again."


class GenerationTimeout(GenerationError):
    public_message = "The assistant took too long to answer. Please try again."
