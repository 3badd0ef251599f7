"""
Provider registry.

Maps string identifiers to adapter factories. Selection is by id only;
callers never import a concrete backend.
"""

from typing import Any, Callable, Dict, List, Optional

from contentpilot.core.errors import ProviderError
from contentpilot.core.logging import get_logger
from contentpilot.core.settings import Settings, get_settings
from .base import ProviderAdapter
from .cohere import CohereProvider
from .gemini import GeminiProvider
from .groq import GroqProvider
from .huggingface import HuggingFaceProvider
from .local import LocalTemplateProvider

logger = get_logger(__name__)

ProviderFactory = Callable[[], ProviderAdapter]


class ProviderRegistry:
    """Registry of AI backends keyed by provider id."""

    def __init__(self):
        self._factories: Dict[str, ProviderFactory] = {}
        self._instances: Dict[str, ProviderAdapter] = {}

    def register(self, provider_id: str, factory: ProviderFactory) -> None:
        """Register (or replace) the factory for ``provider_id``."""
        self._factories[provider_id] = factory
        self._instances.pop(provider_id, None)

    def has(self, provider_id: str) -> bool:
        return provider_id in self._factories

    def list_providers(self) -> List[str]:
        """List registered provider ids."""
        return list(self._factories.keys())

    def unknown(self, provider_ids: List[str]) -> List[str]:
        """Return the ids in ``provider_ids`` that are not registered."""
        return [pid for pid in provider_ids if pid not in self._factories]

    def create(self, provider_id: str) -> ProviderAdapter:
        """
        Build a fresh adapter instance.

        Raises:
            ProviderError: with reason ``unknown_provider`` for unregistered ids
        """
        factory = self._factories.get(provider_id)
        if factory is None:
            raise ProviderError(provider_id, "unknown_provider", f"Unknown provider '{provider_id}'")
        return factory()

    def get(self, provider_id: str) -> ProviderAdapter:
        """Return the shared adapter for ``provider_id``, creating it on first use."""
        adapter = self._instances.get(provider_id)
        if adapter is None:
            adapter = self.create(provider_id)
            self._instances[provider_id] = adapter
        return adapter

    async def health(self) -> Dict[str, Any]:
        report = {}
        for provider_id in self.list_providers():
            try:
                report[provider_id] = await self.get(provider_id).health_check()
            except ProviderError as e:
                report[provider_id] = {"provider": provider_id, "status": "error", "error": str(e)}
        return report

    async def aclose(self) -> None:
        """Close every adapter created so far."""
        for provider_id, adapter in list(self._instances.items()):
            try:
                await adapter.aclose()
            except Exception as e:
                logger.warning(f"Failed to close provider {provider_id}: {e}")
        self._instances.clear()

    @classmethod
    def default(cls, settings: Optional[Settings] = None, transport=None) -> "ProviderRegistry":
        """Registry with every built-in backend configured from settings."""
        settings = settings or get_settings()
        timeout = settings.provider_timeout_seconds
        registry = cls()
        registry.register("gemini", lambda: GeminiProvider(
            api_key=settings.gemini_api_key, model=settings.gemini_model,
            timeout=timeout, transport=transport,
        ))
        registry.register("groq", lambda: GroqProvider(
            api_key=settings.groq_api_key, model=settings.groq_model,
            timeout=timeout, transport=transport,
        ))
        registry.register("cohere", lambda: CohereProvider(
            api_key=settings.cohere_api_key, model=settings.cohere_model,
            timeout=timeout, transport=transport,
        ))
        registry.register("huggingface", lambda: HuggingFaceProvider(
            api_key=settings.huggingface_api_key, model=settings.huggingface_model,
            timeout=timeout, transport=transport,
        ))
        registry.register("local", LocalTemplateProvider)
        return registry
