from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from knowbot.chatbot.triggers import Trigger, parse_triggers
from knowbot.errors import ConfigurationNotFound
from knowbot.knowledge.types import KnowledgeSource
from knowbot.util import PROJECT_ROOT, load_yaml_config

_logger = structlog.get_logger()

_CHATBOTS_CONFIG_PATH = PROJECT_ROOT / "config" / "chatbots.yaml"

DEFAULT_DIRECTIVE = "You are a helpful, knowledgeable assistant."


@dataclass
class ChatbotConfig:
    id: str
    name: str = ""
    directive: str = ""
    description: str = ""
    model: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    knowledge_sources: list[KnowledgeSource] = field(default_factory=list)
    triggers: list[Trigger] = field(default_factory=list)


class ChatbotCatalog:
    def __init__(self, chatbots: dict[str, ChatbotConfig] | None = None) -> None:
        self._chatbots = chatbots or {}

    def get(self, chatbot_id: str) -> ChatbotConfig:
        chatbot = self._chatbots.get(chatbot_id)
        if chatbot is None:
            raise ConfigurationNotFound(f"Chatbot not found: {chatbot_id}")
        return chatbot

    def __contains__(self, chatbot_id: object) -> bool:
        return chatbot_id in self._chatbots

    def __len__(self) -> int:
        return len(self._chatbots)


def load_chatbot_catalog(config_path: Path = _CHATBOTS_CONFIG_PATH) -> ChatbotCatalog:
    raw = load_yaml_config(config_path)
    chatbots = {
        chatbot_id: _parse_chatbot(chatbot_id, chatbot_raw or {})
        for chatbot_id, chatbot_raw in raw.get("chatbots", {}).items()
    }
    _logger.info("chatbot_catalog_loaded", chatbots=len(chatbots))
    return ChatbotCatalog(chatbots)


def _parse_chatbot(chatbot_id: str, raw: dict[str, Any]) -> ChatbotConfig:
    temperature = raw.get("temperature")
    max_tokens = raw.get("max_tokens")
    return ChatbotConfig(
        id=chatbot_id,
        name=raw.get("name", chatbot_id),
        directive=raw.get("directive", ""),
        description=raw.get("description", ""),
        model=raw.get("model") or None,
        temperature=float(temperature) if temperature is not None else None,
        max_tokens=int(max_tokens) if max_tokens is not None else None,
        knowledge_sources=[
            _parse_knowledge_source(chatbot_id, source)
            for source in raw.get("knowledge_sources", [])
        ],
        triggers=parse_triggers(raw.get("logics", []), chatbot_id=chatbot_id),
    )


def _parse_knowledge_source(chatbot_id: str, raw: dict[str, Any] | str) -> KnowledgeSource:
    if isinstance(raw, str):
        return KnowledgeSource(id=raw, name=raw)

    source_id = raw.get("id", "")
    if not source_id:
        raise ValueError(f"Knowledge source without 'id' in chatbot '{chatbot_id}'")
    return KnowledgeSource(id=str(source_id), name=str(raw.get("name", source_id)))
