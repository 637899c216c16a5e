"""
podmortem/providers - Provider base classes

Concrete providers are supplied by the embedding application and handed
to ``ProviderRegistry.register`` at startup.
"""

from .base import BaseProvider

__all__ = [
    "BaseProvider",
]
