import structlog

from knowbot.errors import ConfigurationNotFound
from knowbot.llm.provider.config import AbstractProviderConfig, ProviderConfigGenerator
from knowbot.llm.provider.factory import ProviderFactory
from knowbot.llm.provider.provider import AbstractProvider
from knowbot.llm.provider.types import ProviderType

_logger = structlog.get_logger()


class ProviderRegistry:
    """Generation backends the pipeline may be configured to use.

    Built once from ``llm_provider.yaml``.  Disabled or misconfigured
    providers are left out; asking for one raises
    :class:`ConfigurationNotFound`.
    """

    def __init__(self, config_generator: ProviderConfigGenerator | None = None) -> None:
        self._providers: dict[ProviderType, AbstractProvider] = {}
        self._factory = ProviderFactory()
        for provider_config in (config_generator or ProviderConfigGenerator()).generate():
            self._add(provider_config)

        if not self._providers:
            raise ConfigurationNotFound("No LLM provider is enabled and configured")
        _logger.info("provider_registry_ready", providers=sorted(self._providers))

    def get(self, provider_type: ProviderType) -> AbstractProvider:
        provider = self._providers.get(provider_type)
        if provider is None:
            raise ConfigurationNotFound(
                f"LLM provider '{provider_type}' is not available, "
                f"configured: {', '.join(sorted(self._providers))}"
            )
        return provider

    def available(self) -> list[ProviderType]:
        return sorted(self._providers)

    def _add(self, provider_config: AbstractProviderConfig) -> None:
        if not provider_config.enabled:
            _logger.debug("provider_disabled", config=type(provider_config).__name__)
            return

        try:
            provider = self._factory.from_config(provider_config)
        except (ValueError, ConnectionError, TimeoutError) as exc:
            _logger.error(
                "provider_registration_failed",
                config=type(provider_config).__name__,
                model=provider_config.model,
                error=str(exc),
            )
            return

        self._providers[provider.identify()] = provider
        _logger.info(
            "provider_registered",
            provider=provider.identify().value,
            model=provider_config.model,
            timeout_seconds=provider_config.timeout_seconds,
        )


_provider_registry: ProviderRegistry | None = None


def get_provider_registry() -> ProviderRegistry:
    global _provider_registry  # noqa: PLW0603
    if _provider_registry is None:
        _provider_registry = ProviderRegistry()
    return _provider_registry
