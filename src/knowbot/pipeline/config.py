from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from knowbot.knowledge.config import RetrievalConfig, parse_retrieval_config
from knowbot.llm.provider.types import ProviderType
from knowbot.util import PROJECT_ROOT, load_yaml_config

_PIPELINE_CONFIG_PATH = PROJECT_ROOT / "config" / "pipeline.yaml"


@dataclass
class ExpansionConfig:
    enabled: bool = True
    model: str | None = None  # falls back to the provider's model
    max_tokens: int = 150
    temperature: float = 0.4
    max_variations: int = 2


@dataclass
class GenerationConfig:
    max_tokens: int = 600
    temperature: float = 0.7
    timeout_seconds: float = 30.0


@dataclass
class HistoryConfig:
    lookback_minutes: int = 30
    max_messages: int = 10
    max_prompt_turns: int = 6


@dataclass
class PipelineConfig:
    provider: ProviderType = ProviderType.OPENAI
    retrieval: RetrievalConfig = field(default_factory=RetrievalConfig)
    expansion: ExpansionConfig = field(default_factory=ExpansionConfig)
    generation: GenerationConfig = field(default_factory=GenerationConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)


def load_pipeline_config(config_path: Path = _PIPELINE_CONFIG_PATH) -> PipelineConfig:
    return _parse_config(load_yaml_config(config_path))


def _parse_config(raw: dict[str, Any]) -> PipelineConfig:
    expansion_raw = raw.get("expansion", {})
    generation_raw = raw.get("generation", {})
    history_raw = raw.get("history", {})

    return PipelineConfig(
        provider=ProviderType(raw.get("provider", ProviderType.OPENAI)),
        retrieval=parse_retrieval_config(raw.get("retrieval", {})),
        expansion=ExpansionConfig(
            enabled=bool(expansion_raw.get("enabled", True)),
            model=expansion_raw.get("model") or None,
            max_tokens=int(expansion_raw.get("max_tokens", 150)),
            temperature=float(expansion_raw.get("temperature", 0.4)),
            max_variations=int(expansion_raw.get("max_variations", 2)),
        ),
        generation=GenerationConfig(
            max_tokens=int(generation_raw.get("max_tokens", 600)),
            temperature=float(generation_raw.get("temperature", 0.7)),
            timeout_seconds=float(generation_raw.get("timeout_seconds", 30.0)),
        ),
        history=HistoryConfig(
            lookback_minutes=int(history_raw.get("lookback_minutes", 30)),
            max_messages=int(history_raw.get("max_messages", 10)),
            max_prompt_turns=int(history_raw.get("max_prompt_turns", 6)),
        ),
    )
