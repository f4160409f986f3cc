from __future__ import annotations

import structlog

from knowbot.chatbot.config import ChatbotCatalog, ChatbotConfig
from knowbot.chatbot.triggers import evaluate_triggers, lead_form_due, logic_hints
from knowbot.conversation.store import AbstractConversationStore
from knowbot.conversation.types import ConversationTurn, SenderRole
from knowbot.errors import ConversationStoreError, GenerationError
from knowbot.knowledge.context import assemble_context
from knowbot.knowledge.retriever import MultiSourceRetriever
from knowbot.knowledge.search import AbstractKnowledgeSearch
from knowbot.knowledge.selector import select_diverse
from knowbot.knowledge.types import RetrievalHit
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.pipeline.config import PipelineConfig
from knowbot.pipeline.expander import QueryExpander
from knowbot.pipeline.formatter import format_response
from knowbot.pipeline.generator import AnswerGenerator
from knowbot.pipeline.prompts import compose_prompt, format_history
from knowbot.pipeline.types import PipelineResult, PipelineState

_logger = structlog.get_logger()

_TRANSITIONS: dict[PipelineState, frozenset[PipelineState]] = {
    PipelineState.RECEIVED: frozenset({PipelineState.EXPANDING, PipelineState.FAILED}),
    PipelineState.EXPANDING: frozenset({PipelineState.RETRIEVING}),
    PipelineState.RETRIEVING: frozenset({PipelineState.COMPOSING}),
    PipelineState.COMPOSING: frozenset({PipelineState.GENERATING}),
    PipelineState.GENERATING: frozenset({PipelineState.FORMATTING, PipelineState.FAILED}),
    PipelineState.FORMATTING: frozenset({PipelineState.PERSISTED, PipelineState.FAILED}),
    PipelineState.PERSISTED: frozenset(),
    PipelineState.FAILED: frozenset(),
}


class TurnTracker:
    """Walks one turn through the pipeline states, logging every transition."""

    def __init__(self) -> None:
        self.state = PipelineState.RECEIVED
        self.history = [PipelineState.RECEIVED]

    def advance(self, state: PipelineState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal pipeline transition: {self.state} -> {state}")
        _logger.debug("pipeline_state", previous=self.state.value, state=state.value)
        self.state = state
        self.history.append(state)


class Pipeline:
    """Answers one user message for one chatbot.

    A turn resolves the conversation, stores the user message, expands the
    question, retrieves from the chatbot's knowledge sources, builds a
    grounded or fallback prompt, generates and formats the answer and
    stores it.  Expansion and per-source retrieval failures are absorbed;
    configuration, storage and generation failures are raised.
    """

    def __init__(
        self,
        catalog: ChatbotCatalog,
        store: AbstractConversationStore,
        retriever: MultiSourceRetriever,
        expander: QueryExpander,
        generator: AnswerGenerator,
        config: PipelineConfig,
    ) -> None:
        self._catalog = catalog
        self._store = store
        self._retriever = retriever
        self._expander = expander
        self._generator = generator
        self._config = config
        self.last_tracker: TurnTracker | None = None

    @classmethod
    def from_components(
        cls,
        catalog: ChatbotCatalog,
        store: AbstractConversationStore,
        search: AbstractKnowledgeSearch,
        provider: AbstractProvider,
        config: PipelineConfig,
    ) -> Pipeline:
        return cls(
            catalog=catalog,
            store=store,
            retriever=MultiSourceRetriever(search, config.retrieval),
            expander=QueryExpander(provider, config.expansion),
            generator=AnswerGenerator(provider, config.generation),
            config=config,
        )

    def run_turn(
        self,
        chatbot_id: str,
        user_message: str,
        conversation_id: str | None = None,
    ) -> PipelineResult:
        if not user_message.strip():
            raise ValueError("user_message must not be empty")

        tracker = TurnTracker()
        self.last_tracker = tracker
        chatbot = self._catalog.get(chatbot_id)

        with structlog.contextvars.bound_contextvars(chatbot_id=chatbot_id):
            try:
                conversation_id = self._resolve_conversation(
                    chatbot_id, conversation_id, user_message
                )
                history = self._store.get_recent_messages(
                    conversation_id,
                    since_minutes_ago=self._config.history.lookback_minutes,
                    max_count=self._config.history.max_messages,
                )
                self._store.append_message(conversation_id, SenderRole.USER, user_message)
            except ConversationStoreError as exc:
                tracker.advance(PipelineState.FAILED)
                exc.conversation_id = exc.conversation_id or conversation_id
                _logger.error("turn_failed", stage="conversation", error=str(exc))
                raise

            with structlog.contextvars.bound_contextvars(conversation_id=conversation_id):
                return self._answer(tracker, chatbot, conversation_id, user_message, history)

    def _answer(
        self,
        tracker: TurnTracker,
        chatbot: ChatbotConfig,
        conversation_id: str,
        user_message: str,
        history: list[ConversationTurn],
    ) -> PipelineResult:
        triggered = evaluate_triggers(chatbot.triggers, user_message)

        tracker.advance(PipelineState.EXPANDING)
        queries = self._expander.expand(user_message)

        tracker.advance(PipelineState.RETRIEVING)
        outcome = self._retriever.retrieve(chatbot.id, queries, chatbot.knowledge_sources)
        selected = select_diverse(outcome.hits, self._config.retrieval)
        context = assemble_context(
            selected, outcome.citation_candidates, self._config.retrieval.max_citations
        )

        tracker.advance(PipelineState.COMPOSING)
        prompt = compose_prompt(
            chatbot,
            question=user_message,
            context=context,
            history=format_history(history, self._config.history.max_prompt_turns),
            logic_context=logic_hints(triggered),
        )

        tracker.advance(PipelineState.GENERATING)
        try:
            raw_answer = self._generator.generate(prompt.text, chatbot)
        except GenerationError as exc:
            tracker.advance(PipelineState.FAILED)
            exc.conversation_id = conversation_id
            _logger.error(
                "generation_failed",
                error_type=type(exc).__name__,
                error=str(exc),
                mode=prompt.mode.value,
            )
            raise

        tracker.advance(PipelineState.FORMATTING)
        answer_html = format_response(raw_answer, context.citations)
        try:
            self._store.append_message(conversation_id, SenderRole.BOT, answer_html)
        except ConversationStoreError as exc:
            tracker.advance(PipelineState.FAILED)
            exc.conversation_id = conversation_id
            _logger.error("turn_failed", stage="persist_answer", error=str(exc))
            raise
        tracker.advance(PipelineState.PERSISTED)

        _logger.info(
            "turn_completed",
            mode=prompt.mode.value,
            queries=len(queries),
            sources_used=len(selected),
            citations=len(context.citations),
            triggered=[t.id for t in triggered],
        )
        return PipelineResult(
            answer_html=answer_html,
            conversation_id=conversation_id,
            citations=list(context.citations),
            triggered_logics=triggered,
            raw_answer=raw_answer,
            sources_used=len(selected),
            mode=prompt.mode,
        )

    def search(
        self,
        chatbot_id: str,
        query: str,
        limit: int | None = None,
        threshold: float | None = None,
    ) -> list[RetrievalHit]:
        chatbot = self._catalog.get(chatbot_id)
        return self._retriever.search(
            chatbot.id, query, chatbot.knowledge_sources, limit=limit, threshold=threshold
        )

    def should_show_lead_form(self, chatbot_id: str, conversation_id: str) -> bool:
        chatbot = self._catalog.get(chatbot_id)
        if not chatbot.triggers:
            return False
        last_user = self._store.last_message(conversation_id, role=SenderRole.USER)
        return lead_form_due(
            chatbot.triggers,
            message_count=self._store.count_messages(conversation_id),
            last_user_message=last_user.content if last_user else None,
        )

    def _resolve_conversation(
        self, chatbot_id: str, conversation_id: str | None, user_message: str
    ) -> str:
        if conversation_id:
            existing = self._store.find_conversation(conversation_id)
            if existing:
                return existing
            _logger.info("conversation_not_found", requested_id=conversation_id)
        return self._store.create_conversation(chatbot_id, title_hint=user_message)
