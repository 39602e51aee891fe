"""Embedding provider interface."""

from abc import ABC, abstractmethod
from typing import List


class EmbeddingProvider(ABC):
    """Turns a text query into a fixed-length vector."""

    @property
    def configured(self) -> bool:
        """Whether the provider has what it needs (credentials, endpoint) to run."""
        return True

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Embed ``text``.

        Raises
        - ``ProviderUnavailable`` when unconfigured, unreachable, or erroring
        - ``ProviderTimeout`` when the call exceeds its deadline
        """
        pass

    async def close(self) -> None:
        """Release network resources held by the provider."""


class EmbeddingProviderError(Exception):
    """Base exception for embedding providers."""
    pass


class ProviderUnavailable(EmbeddingProviderError):
    """Provider is unconfigured, unreachable, or returned an error."""
    pass


class ProviderTimeout(EmbeddingProviderError):
    """Provider did not answer in time."""
    pass
