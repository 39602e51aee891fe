"""Query embedding providers.

Modules
- ``base``: ``EmbeddingProvider`` contract and errors
- ``http``: httpx client for OpenAI-compatible embedding endpoints
"""

from .base import EmbeddingProvider, EmbeddingProviderError, ProviderTimeout, ProviderUnavailable

__all__ = [
    "EmbeddingProvider",
    "EmbeddingProviderError",
    "ProviderTimeout",
    "ProviderUnavailable",
]
