import sys

import structlog

from knowbot.chatbot.config import load_chatbot_catalog
from knowbot.conversation import SqlConversationStore
from knowbot.embedding import create_embedding_provider
from knowbot.errors import PipelineError
from knowbot.knowledge.config import load_knowledge_store_config
from knowbot.knowledge.pgvector import PgVectorSearch
from knowbot.llm.provider.registry import get_provider_registry
from knowbot.pipeline.config import load_pipeline_config
from knowbot.pipeline.orchestrator import Pipeline
from knowbot.util import PROJECT_ROOT, load_yaml_config
from knowbot.util.db import configure_engine, init_db
from knowbot.util.logging import DEFAULT_QUIET_LOGGERS, configure_logging

_logger = structlog.get_logger()
_OBSERVABILITY_CONFIG_PATH = PROJECT_ROOT / "config" / "observability.yaml"

_USAGE = """Usage:
  python -m knowbot ask <chatbot_id> <message> [--conversation ID]
  python -m knowbot search <chatbot_id> <query> [--limit N] [--threshold F]
  python -m knowbot init-db"""


def _init_logging() -> None:
    try:
        obs_config = load_yaml_config(_OBSERVABILITY_CONFIG_PATH)
        logging_config = obs_config.get("logging", {})
    except Exception:
        configure_logging()
        return

    json_output = logging_config.get("json_output", True)
    log_level = logging_config.get("log_level", "INFO")
    quiet_loggers = logging_config.get("quiet_loggers", DEFAULT_QUIET_LOGGERS)
    configure_logging(
        json_output=bool(json_output),
        log_level=str(log_level),
        quiet_loggers=[str(name) for name in quiet_loggers],
    )


def _option(args: list[str], name: str) -> str | None:
    if name not in args:
        return None
    idx = args.index(name)
    if idx + 1 >= len(args):
        print(f"{name} requires a value")
        sys.exit(1)
    value = args[idx + 1]
    del args[idx : idx + 2]
    return value


def _build_pipeline() -> Pipeline:
    pipeline_config = load_pipeline_config()
    store_config = load_knowledge_store_config()
    configure_engine(store_config.database_url)

    provider = get_provider_registry().get(pipeline_config.provider)
    search = PgVectorSearch(create_embedding_provider(store_config.embedding))

    return Pipeline.from_components(
        catalog=load_chatbot_catalog(),
        store=SqlConversationStore(),
        search=search,
        provider=provider,
        config=pipeline_config,
    )


def _ask(args: list[str]) -> None:
    conversation_id = _option(args, "--conversation")
    if len(args) != 2:
        print(_USAGE)
        sys.exit(1)

    chatbot_id, message = args
    result = _build_pipeline().run_turn(chatbot_id, message, conversation_id=conversation_id)

    print(result.answer_html)
    print()
    print(f"conversation: {result.conversation_id}")
    print(f"mode: {result.mode} ({result.sources_used} chunks)")
    for citation in result.citations:
        print(f"source: {citation.title} <{citation.url}> ({citation.score:.2f})")
    for trigger in result.triggered_logics:
        print(f"logic: {trigger.id} [{trigger.feature_type}]")


def _search(args: list[str]) -> None:
    limit = _option(args, "--limit")
    threshold = _option(args, "--threshold")
    if len(args) != 2:
        print(_USAGE)
        sys.exit(1)

    chatbot_id, query = args
    hits = _build_pipeline().search(
        chatbot_id,
        query,
        limit=int(limit) if limit else None,
        threshold=float(threshold) if threshold else None,
    )
    for hit in hits:
        print(f"{hit.score:.3f}  [{hit.source_name}] {hit.title or hit.url}")
        print(f"       {hit.content[:160]}")


def _init_db() -> None:
    configure_engine(load_knowledge_store_config().database_url)
    init_db()
    _logger.info("database_initialized")


def main() -> None:
    args = sys.argv[1:]
    if not args:
        print(_USAGE)
        sys.exit(1)

    _init_logging()
    command, rest = args[0], args[1:]

    try:
        match command:
            case "ask":
                _ask(rest)
            case "search":
                _search(rest)
            case "init-db":
                _init_db()
            case _:
                print(_USAGE)
                sys.exit(1)
    except PipelineError as exc:
        _logger.error("command_failed", command=command, error=str(exc))
        print(exc.public_message, file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
