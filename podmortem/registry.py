"""
podmortem/registry.py - Provider registry

Holds the explanation providers known to the process, keyed by provider id.

The registry is written exactly once, at startup, from the full collection
of providers supplied by the embedding application. After that the mapping
is frozen and lookups are lock-free.
"""

from __future__ import annotations

import logging
import threading
from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional

from .exceptions import RegistryError, UnknownProviderError
from .protocol import AIProviderProtocol

logger = logging.getLogger("podmortem.registry")


class ProviderRegistry:
    """
    Registry of explanation providers.

    Duplicate provider ids resolve last-registered-wins. The outcome depends
    on the order of the iterable passed to ``register``.
    """

    def __init__(self, providers: Optional[Iterable[AIProviderProtocol]] = None):
        self._lock = threading.Lock()
        self._providers: Optional[Mapping[str, AIProviderProtocol]] = None
        if providers is not None:
            self.register(providers)

    @property
    def is_initialized(self) -> bool:
        return self._providers is not None

    def register(self, providers: Iterable[AIProviderProtocol]) -> "ProviderRegistry":
        """
        Build the registry from every available provider.

        Args:
            providers: All provider instances for this process

        Returns:
            Self for chaining

        Raises:
            RegistryError: If already initialized, or a provider has no id
        """
        with self._lock:
            if self._providers is not None:
                raise RegistryError("Provider registry is already initialized")

            mapping: Dict[str, AIProviderProtocol] = {}
            for provider in providers:
                provider_id = provider.get_provider_id()
                if not provider_id:
                    raise RegistryError(
                        f"Provider {type(provider).__name__} reported an empty provider id"
                    )
                if provider_id in mapping:
                    logger.warning(
                        f"Duplicate AI provider id '{provider_id}': "
                        f"{type(provider).__name__} replaces "
                        f"{type(mapping[provider_id]).__name__}"
                    )
                mapping[provider_id] = provider
                logger.info(f"Registered AI provider: {provider_id}")

            self._providers = MappingProxyType(mapping)

        logger.info(f"AI provider registry initialized with {len(mapping)} providers")
        return self

    def _require_initialized(self) -> Mapping[str, AIProviderProtocol]:
        providers = self._providers
        if providers is None:
            raise RegistryError("Provider registry used before initialization")
        return providers

    def resolve(self, provider_id: str) -> AIProviderProtocol:
        """
        Look up a provider by id.

        Raises:
            UnknownProviderError: If the id is not registered
            RegistryError: If the registry has not been initialized
        """
        providers = self._require_initialized()
        provider = providers.get(provider_id)
        if provider is None:
            raise UnknownProviderError(provider_id, providers.keys())
        return provider

    def list(self) -> List[AIProviderProtocol]:
        """All registered providers, in first-registration order of their ids."""
        return list(self._require_initialized().values())

    def available_ids(self) -> List[str]:
        return list(self._require_initialized().keys())

    def is_available(self, provider_id: str) -> bool:
        providers = self._providers
        return providers is not None and provider_id in providers

    def __len__(self) -> int:
        providers = self._providers
        return len(providers) if providers is not None else 0

    def __contains__(self, provider_id: object) -> bool:
        return isinstance(provider_id, str) and self.is_available(provider_id)
