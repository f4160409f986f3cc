import threading
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from knowbot.chatbot.config import ChatbotCatalog, ChatbotConfig
from knowbot.chatbot.triggers import FeatureType, Trigger, parse_trigger
from knowbot.conversation.store import AbstractConversationStore
from knowbot.conversation.types import ConversationTurn, SenderRole
from knowbot.errors import (
    ConfigurationNotFound,
    ConversationStoreError,
    GenerationError,
    GenerationTimeout,
)
from knowbot.knowledge.search import AbstractKnowledgeSearch
from knowbot.knowledge.types import KnowledgeSource, RetrievalHit, SearchScope
from knowbot.llm.provider.types import Message, TextResponse, TokenUsage
from knowbot.pipeline import Pipeline, PipelineState, PromptMode
from knowbot.pipeline.config import PipelineConfig

PRICING = KnowledgeSource(id="kb-pricing", name="Pricing")
DOCS = KnowledgeSource(id="kb-docs", name="Docs")


class InMemoryConversationStore(AbstractConversationStore):
    def __init__(self) -> None:
        self.conversations: dict[str, str] = {}
        self.messages: dict[str, list[ConversationTurn]] = {}

    def find_conversation(self, conversation_id: str) -> str | None:
        return conversation_id if conversation_id in self.conversations else None

    def create_conversation(self, chatbot_id: str, title_hint: str) -> str:
        conversation_id = f"conv-{len(self.conversations) + 1}"
        self.conversations[conversation_id] = chatbot_id
        self.messages[conversation_id] = []
        return conversation_id

    def append_message(self, conversation_id: str, role: SenderRole, content: str) -> None:
        self.messages[conversation_id].append(
            ConversationTurn(role=role, content=content, created_at=datetime.now(UTC))
        )

    def get_recent_messages(
        self, conversation_id: str, since_minutes_ago: int, max_count: int
    ) -> list[ConversationTurn]:
        return self.messages.get(conversation_id, [])[-max_count:]

    def count_messages(self, conversation_id: str) -> int:
        return len(self.messages.get(conversation_id, []))

    def last_message(
        self, conversation_id: str, role: SenderRole | None = None
    ) -> ConversationTurn | None:
        turns = [t for t in self.messages.get(conversation_id, []) if role in (None, t.role)]
        return turns[-1] if turns else None


class TableSearch(AbstractKnowledgeSearch):
    def __init__(self, table: dict[str, list[RetrievalHit] | Exception]) -> None:
        self.table = table
        self.queries: list[str] = []
        self._lock = threading.Lock()

    def search(
        self, query: str, scope: SearchScope, limit: int, threshold: float
    ) -> list[RetrievalHit]:
        with self._lock:
            self.queries.append(query)
        result = self.table.get(scope.source.id, [])
        if isinstance(result, Exception):
            raise result
        return list(result)


def _hits(source: KnowledgeSource, topic: str) -> list[RetrievalHit]:
    return [
        RetrievalHit(
            content=f"{topic} paragraph {i} " + f"{source.id}{i}details " * 10,
            score=0.9 - i * 0.1,
            source_id=source.id,
            source_name=source.name,
            url=f"https://example.com/{source.id}/{i}",
            title=f"{source.name} {i}",
        )
        for i in range(3)
    ]


def _provider(answer: str = "<p>Our plans start at $10.</p>") -> MagicMock:
    """Answers expansion prompts with variations and everything else with *answer*."""
    provider = MagicMock()
    provider.config.model = "test-model"
    prompts: list[str] = []

    def complete(messages: list[Message], options: object = None) -> TextResponse:
        prompt = messages[0].content
        prompts.append(prompt)
        usage = TokenUsage(input_tokens=1, output_tokens=1)
        if "search variations" in prompt:
            return TextResponse(content="1. plan prices\n2. subscription cost", usage=usage)
        return TextResponse(content=answer, usage=usage)

    provider.complete.side_effect = complete
    provider.prompts = prompts
    return provider


def _demo_trigger() -> Trigger:
    return parse_trigger(
        {
            "id": "book-demo",
            "feature": "SCHEDULE_MEETING",
            "keywords": ["demo", "pricing"],
            "config": {"calendar_link": "https://cal.example/demo"},
        }
    )


def _pipeline(
    chatbot: ChatbotConfig,
    search: AbstractKnowledgeSearch,
    provider: MagicMock,
    store: AbstractConversationStore | None = None,
) -> tuple[Pipeline, AbstractConversationStore]:
    store = store or InMemoryConversationStore()
    pipeline = Pipeline.from_components(
        catalog=ChatbotCatalog({chatbot.id: chatbot}),
        store=store,
        search=search,
        provider=provider,
        config=PipelineConfig(),
    )
    return pipeline, store


class TestRunTurn:
    def test_grounded_answer_with_citations(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING, DOCS])
        search = TableSearch({"kb-pricing": _hits(PRICING, "pricing"), "kb-docs": _hits(DOCS, "docs")})
        provider = _provider()
        pipeline, _ = _pipeline(chatbot, search, provider)

        result = pipeline.run_turn("acme", "What are your pricing plans?")

        assert result.mode == PromptMode.GROUNDED
        assert 0 < result.sources_used <= 10
        assert len(result.citations) == 3
        assert [c.score for c in result.citations] == sorted(
            (c.score for c in result.citations), reverse=True
        )
        assert result.answer_html.startswith("<p>Our plans start at $10.</p>")
        assert "Read More" in result.answer_html
        for citation in result.citations:
            assert citation.url in result.answer_html
        assert set(search.queries) == {
            "What are your pricing plans?",
            "plan prices",
            "subscription cost",
        }
        assert "KNOWLEDGE BASE CONTEXT:" in provider.prompts[-1]

    def test_citations_come_from_retrieved_hits(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING, DOCS])
        pricing = _hits(PRICING, "pricing")
        docs = _hits(DOCS, "docs")
        search = TableSearch({"kb-pricing": pricing, "kb-docs": docs})
        pipeline, _ = _pipeline(chatbot, search, _provider())

        result = pipeline.run_turn("acme", "What are your pricing plans?")

        retrieved_urls = {hit.url for hit in pricing + docs if hit.score > 0.55}
        assert {c.url for c in result.citations} <= retrieved_urls

    def test_no_sources_uses_fallback(self) -> None:
        chatbot = ChatbotConfig(id="acme", directive="You are Acme's assistant.")
        search = TableSearch({})
        provider = _provider("Hello! How can I help?")
        pipeline, _ = _pipeline(chatbot, search, provider)

        result = pipeline.run_turn("acme", "Hi there")

        assert result.mode == PromptMode.FALLBACK
        assert result.citations == []
        assert result.sources_used == 0
        assert result.answer_html == "<p>Hello! How can I help?</p>"
        assert "Read More" not in result.answer_html
        assert search.queries == []
        assert provider.prompts[-1].startswith("You are Acme's assistant.")

    def test_keyword_trigger_reported(self) -> None:
        trigger = _demo_trigger()
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING], triggers=[trigger])
        search = TableSearch({"kb-pricing": _hits(PRICING, "pricing")})
        pipeline, _ = _pipeline(chatbot, search, _provider())

        result = pipeline.run_turn("acme", "Can I see a demo?")

        assert result.triggered_logics == [trigger]
        assert result.triggered_logics[0].feature_type == FeatureType.SCHEDULE_MEETING
        assert result.mode == PromptMode.GROUNDED
        assert result.citations

    def test_generation_failure_keeps_user_message(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING])
        search = TableSearch({"kb-pricing": _hits(PRICING, "pricing")})
        provider = _provider()
        provider.complete.side_effect = GenerationError("backend down")
        pipeline, store = _pipeline(chatbot, search, provider)

        with pytest.raises(GenerationError) as exc_info:
            pipeline.run_turn("acme", "What are your pricing plans?")

        conversation_id = exc_info.value.conversation_id
        assert conversation_id is not None
        turns = store.get_recent_messages(conversation_id, 30, 10)
        assert [(t.role, t.content) for t in turns] == [
            (SenderRole.USER, "What are your pricing plans?")
        ]
        assert pipeline.last_tracker is not None
        assert pipeline.last_tracker.state == PipelineState.FAILED
        assert PipelineState.GENERATING in pipeline.last_tracker.history

    def test_generation_timeout_is_distinct(self) -> None:
        chatbot = ChatbotConfig(id="acme")
        provider = _provider()
        provider.complete.side_effect = GenerationTimeout("too slow")
        pipeline, _ = _pipeline(chatbot, TableSearch({}), provider)

        with pytest.raises(GenerationTimeout):
            pipeline.run_turn("acme", "Hello")

    def test_successful_turn_persists_both_messages(self) -> None:
        chatbot = ChatbotConfig(id="acme")
        pipeline, store = _pipeline(chatbot, TableSearch({}), _provider("<p>Hi!</p>"))

        result = pipeline.run_turn("acme", "Hello")

        turns = store.get_recent_messages(result.conversation_id, 30, 10)
        assert [(t.role, t.content) for t in turns] == [
            (SenderRole.USER, "Hello"),
            (SenderRole.BOT, "<p>Hi!</p>"),
        ]
        assert pipeline.last_tracker is not None
        assert pipeline.last_tracker.history == [
            PipelineState.RECEIVED,
            PipelineState.EXPANDING,
            PipelineState.RETRIEVING,
            PipelineState.COMPOSING,
            PipelineState.GENERATING,
            PipelineState.FORMATTING,
            PipelineState.PERSISTED,
        ]

    def test_expansion_failure_still_answers(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING])
        search = TableSearch({"kb-pricing": _hits(PRICING, "pricing")})
        provider = _provider()
        answer = TextResponse(content="<p>Answer</p>", usage=TokenUsage(1, 1))
        provider.complete.side_effect = [GenerationTimeout("expansion slow"), answer]
        pipeline, _ = _pipeline(chatbot, search, provider)

        result = pipeline.run_turn("acme", "What are your pricing plans?")

        assert search.queries == ["What are your pricing plans?"]
        assert result.raw_answer == "<p>Answer</p>"
        assert result.mode == PromptMode.GROUNDED

    def test_partial_source_failure_tolerated(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING, DOCS])
        search = TableSearch(
            {"kb-pricing": ConnectionError("pricing index offline"), "kb-docs": _hits(DOCS, "docs")}
        )
        pipeline, _ = _pipeline(chatbot, search, _provider())

        result = pipeline.run_turn("acme", "What are your pricing plans?")

        assert result.mode == PromptMode.GROUNDED
        assert all("/kb-docs/" in c.url for c in result.citations)

    def test_history_passed_to_prompt(self) -> None:
        chatbot = ChatbotConfig(id="acme")
        provider = _provider("<p>Sure.</p>")
        pipeline, _ = _pipeline(chatbot, TableSearch({}), provider)

        first = pipeline.run_turn("acme", "My name is Ada")
        pipeline.run_turn("acme", "What is my name?", conversation_id=first.conversation_id)

        final_prompt = provider.prompts[-1]
        assert "User: My name is Ada\nAssistant: <p>Sure.</p>" in final_prompt
        assert "User: What is my name?" not in final_prompt

    def test_first_turn_history_marker(self) -> None:
        provider = _provider()
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), provider)

        pipeline.run_turn("acme", "Hello")

        assert "This is the start of the conversation." in provider.prompts[-1]

    def test_empty_message_rejected(self) -> None:
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        with pytest.raises(ValueError):
            pipeline.run_turn("acme", "   ")


class TestConversationResolution:
    def test_known_conversation_reused(self) -> None:
        pipeline, store = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())
        first = pipeline.run_turn("acme", "Hello")

        second = pipeline.run_turn("acme", "Again", conversation_id=first.conversation_id)

        assert second.conversation_id == first.conversation_id
        assert store.count_messages(first.conversation_id) == 4

    def test_unknown_conversation_replaced_silently(self) -> None:
        pipeline, store = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        result = pipeline.run_turn("acme", "Hello", conversation_id="stale-id")

        assert result.conversation_id != "stale-id"
        assert store.find_conversation(result.conversation_id) == result.conversation_id

    def test_missing_id_creates_new_each_time(self) -> None:
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        first = pipeline.run_turn("acme", "Hello")
        second = pipeline.run_turn("acme", "Hello")

        assert first.conversation_id != second.conversation_id

    def test_storage_failure_fails_turn(self) -> None:
        store = MagicMock(spec=AbstractConversationStore)
        store.find_conversation.side_effect = ConversationStoreError("db offline")
        provider = _provider()
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), provider, store=store)

        with pytest.raises(ConversationStoreError):
            pipeline.run_turn("acme", "Hello", conversation_id="abc")

        provider.complete.assert_not_called()
        assert pipeline.last_tracker is not None
        assert pipeline.last_tracker.state == PipelineState.FAILED

    def test_unknown_chatbot(self) -> None:
        pipeline, store = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        with pytest.raises(ConfigurationNotFound):
            pipeline.run_turn("ghost", "Hello")

        assert store.count_messages("conv-1") == 0


class TestSearchEntryPoint:
    def test_search_without_generation(self) -> None:
        chatbot = ChatbotConfig(id="acme", knowledge_sources=[PRICING, DOCS])
        search = TableSearch({"kb-pricing": _hits(PRICING, "pricing"), "kb-docs": _hits(DOCS, "docs")})
        provider = _provider()
        pipeline, _ = _pipeline(chatbot, search, provider)

        hits = pipeline.search("acme", "pricing", limit=4)

        assert len(hits) == 4
        assert [h.score for h in hits] == sorted((h.score for h in hits), reverse=True)
        assert search.queries == ["pricing", "pricing"]
        provider.complete.assert_not_called()

    def test_unknown_chatbot(self) -> None:
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        with pytest.raises(ConfigurationNotFound):
            pipeline.search("ghost", "pricing")


class TestShouldShowLeadForm:
    def _lead_chatbot(self, **trigger: object) -> ChatbotConfig:
        raw: dict[str, object] = {"id": "lead", "feature": "LEAD_COLLECTION", "config": {}}
        raw.update(trigger)
        return ChatbotConfig(id="acme", triggers=[parse_trigger(raw)])

    def test_message_count_rule(self) -> None:
        chatbot = self._lead_chatbot(trigger="MESSAGE_COUNT", message_count=3)
        pipeline, _ = _pipeline(chatbot, TableSearch({}), _provider())
        first = pipeline.run_turn("acme", "Hello")

        assert not pipeline.should_show_lead_form("acme", first.conversation_id)

        pipeline.run_turn("acme", "More", conversation_id=first.conversation_id)

        assert pipeline.should_show_lead_form("acme", first.conversation_id)

    def test_keyword_rule_uses_last_user_message(self) -> None:
        chatbot = self._lead_chatbot(trigger="KEYWORD", keywords=["quote"])
        pipeline, _ = _pipeline(chatbot, TableSearch({}), _provider("<p>We can send a quote.</p>"))

        result = pipeline.run_turn("acme", "Hello")
        assert not pipeline.should_show_lead_form("acme", result.conversation_id)

        pipeline.run_turn("acme", "Can I get a quote?", conversation_id=result.conversation_id)
        assert pipeline.should_show_lead_form("acme", result.conversation_id)

    def test_no_lead_logic(self) -> None:
        pipeline, _ = _pipeline(ChatbotConfig(id="acme"), TableSearch({}), _provider())

        assert not pipeline.should_show_lead_form("acme", "conv-1")
