import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class EmbeddingProviderType(StrEnum):
    OPENAI = "openai"


@dataclass
class AbstractEmbeddingConfig(ABC):
    model: str

    @classmethod
    @abstractmethod
    def from_envs(cls, raw: dict[str, Any], model: str) -> "AbstractEmbeddingConfig": ...


@dataclass
class OpenAIEmbeddingConfig(AbstractEmbeddingConfig):
    api_key: str
    api_url: str | None = None

    @classmethod
    def from_envs(cls, raw: dict[str, Any], model: str) -> "OpenAIEmbeddingConfig":
        api_key = os.getenv(raw.get("api_key_env", ""), "")
        if not api_key:
            raise ValueError(f"Missing env var: {raw.get('api_key_env', '')}")

        api_url = os.getenv(raw.get("api_url_env", ""), "") or None

        return cls(model=model, api_key=api_key, api_url=api_url)
