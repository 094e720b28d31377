"""Provider construction and caching.

The factory is an ordinary object built from Settings. Providers are
cached by configuration identity (type + sorted options), so asking
twice for the same backend returns the same instance and the same
reachability cache.
"""

import json
import logging
from enum import Enum
from typing import Any

import httpx

from arbitrator.config import ProviderSettings, Settings

from .base import AttachmentLimits, ModelProvider, RequestOptions
from .lmstudio import LmStudioProvider
from .ollama import OllamaProvider

logger = logging.getLogger(__name__)


class ProviderType(str, Enum):
    LMSTUDIO = "lmstudio"
    OLLAMA = "ollama"


PROVIDER_CLASSES: dict[ProviderType, type[ModelProvider]] = {
    ProviderType.LMSTUDIO: LmStudioProvider,
    ProviderType.OLLAMA: OllamaProvider,
}


class ProviderFactory:
    """Creates and caches backend providers.

    Usage:
        factory = ProviderFactory(settings)
        backends = await factory.initialize_all()
        ...
        await factory.aclose()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.settings = settings or Settings()
        self._transport = transport
        self._providers: dict[str, ModelProvider] = {}

    @staticmethod
    def cache_key(provider_type: ProviderType, options: dict[str, Any] | None) -> str:
        if not options:
            return provider_type.value
        return f"{provider_type.value}:{json.dumps(options, sort_keys=True, default=str)}"

    def _settings_for(self, provider_type: ProviderType) -> ProviderSettings:
        return getattr(self.settings.providers, provider_type.value)

    def _default_options(self) -> RequestOptions:
        models = self.settings.models
        return RequestOptions(
            temperature=models.temperature,
            max_tokens=models.max_tokens,
            stop=list(models.stop),
        )

    def _attachment_limits(self) -> AttachmentLimits:
        files = self.settings.files
        return AttachmentLimits(
            max_file_size=files.max_file_size,
            allowed_extensions=frozenset(ext.lower() for ext in files.allowed_extensions),
        )

    def create(
        self,
        provider_type: ProviderType | str,
        options: dict[str, Any] | None = None,
    ) -> ModelProvider:
        """Get or create a provider.

        ``options`` override the configured endpoint, default_model
        and timeout for this instance.

        Raises:
            ValueError: For an unknown provider type.
        """
        provider_type = ProviderType(provider_type)
        key = self.cache_key(provider_type, options)
        if key in self._providers:
            return self._providers[key]

        configured = self._settings_for(provider_type)
        merged = {
            "endpoint": configured.endpoint,
            "default_model": configured.default_model,
            "timeout": configured.timeout,
            **(options or {}),
        }
        provider = PROVIDER_CLASSES[provider_type](
            endpoint=merged["endpoint"],
            default_model=merged["default_model"],
            timeout=float(merged["timeout"]),
            default_options=self._default_options(),
            transport=self._transport,
            attachment_limits=self._attachment_limits(),
        )
        self._providers[key] = provider
        logger.debug(f"Created provider {provider!r}")
        return provider

    def enabled_types(self) -> list[ProviderType]:
        return [t for t in ProviderType if self._settings_for(t).enabled]

    def configured_providers(self) -> list[ModelProvider]:
        """Every enabled provider, in registration order (not probed)."""
        return [self.create(t) for t in self.enabled_types()]

    async def available_providers(self) -> list[ProviderType]:
        """Probe each enabled provider and return the reachable types."""
        available = []
        for provider_type in self.enabled_types():
            if await self.create(provider_type).is_reachable(refresh=True):
                available.append(provider_type)
            else:
                logger.info(f"{provider_type.value} not available")
        return available

    async def initialize_all(self) -> dict[ProviderType, ModelProvider]:
        """Initialize every reachable provider."""
        initialized: dict[ProviderType, ModelProvider] = {}
        for provider_type in await self.available_providers():
            initialized[provider_type] = self.create(provider_type)
        return initialized

    def clear_cache(self) -> None:
        self._providers.clear()

    async def aclose(self) -> None:
        for provider in self._providers.values():
            await provider.aclose()
