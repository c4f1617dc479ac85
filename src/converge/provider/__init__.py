"""Provider interface and the in-memory simulated provider."""

from .base import Provider, ProviderResource, ProviderResult, ProviderStatus
from .memory import InMemoryProvider, ProviderCall

__all__ = [
    "Provider",
    "ProviderResource",
    "ProviderResult",
    "ProviderStatus",
    "InMemoryProvider",
    "ProviderCall",
]
