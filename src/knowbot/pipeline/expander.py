import re

import structlog

from knowbot.errors import ExpansionError
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import CompletionOptions, Message, MessageRole
from knowbot.pipeline.config import ExpansionConfig

_logger = structlog.get_logger()

_NUMBERING = re.compile(r"^\d+[.)]\s*")

QUERY_REWRITE_PROMPT = """Generate 2-3 search variations for this question to capture different angles.
Keep each variation focused and 5-15 words.

User question: {question}

Output format (one per line):
1. [variation]
2. [variation]
3. [variation]"""


def parse_variations(text: str, original: str) -> list[str]:
    """Turn a numbered list from the model into clean search queries."""
    variations: list[str] = []
    seen = {original.strip().casefold()}
    for line in text.splitlines():
        variation = _NUMBERING.sub("", line.strip()).strip()
        if not variation or variation.casefold() in seen:
            continue
        seen.add(variation.casefold())
        variations.append(variation)
    return variations


class QueryExpander:
    def __init__(self, provider: AbstractProvider, config: ExpansionConfig) -> None:
        self._provider = provider
        self._config = config

    def expand(self, utterance: str) -> list[str]:
        """Return the utterance followed by up to ``max_variations`` rephrasings.

        Never fails: any problem with the model falls back to the
        utterance alone.
        """
        if not self._config.enabled:
            return [utterance]

        try:
            variations = self._generate_variations(utterance)
        except Exception as exc:
            _logger.warning(
                "query_expansion_failed",
                query_preview=utterance[:80],
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return [utterance]

        queries = [utterance, *variations[: self._config.max_variations]]
        _logger.info("query_expanded", queries=queries)
        return queries

    def _generate_variations(self, utterance: str) -> list[str]:
        response = self._provider.complete(
            [
                Message(
                    role=MessageRole.USER,
                    content=QUERY_REWRITE_PROMPT.format(question=utterance),
                )
            ],
            CompletionOptions(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
            ),
        )
        variations = parse_variations(response.content, utterance)
        if not variations:
            raise ExpansionError("model returned no usable variations")
        return variations
