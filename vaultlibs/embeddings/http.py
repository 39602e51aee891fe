"""HTTP embedding provider for OpenAI-compatible ``/embeddings`` endpoints.

Each call is guarded by a circuit breaker and retried with exponential
backoff. Transport timeouts surface as ``ProviderTimeout``; any other
transport or protocol failure surfaces as ``ProviderUnavailable``.
"""

import time
from typing import List, Optional

import httpx
import structlog

from ..common.circuit_breaker import CircuitBreaker, CircuitBreakerError
from ..common.metrics import MetricsCollector
from ..common.retry import call_with_retry
from .base import EmbeddingProvider, EmbeddingProviderError, ProviderTimeout, ProviderUnavailable

logger = structlog.get_logger("embeddings.http")


class HttpEmbeddingProvider(EmbeddingProvider):
    """Embedding provider speaking the OpenAI embeddings wire format."""

    def __init__(
        self,
        base_url: str,
        model: str,
        api_key: Optional[str] = None,
        timeout: float = 5.0,
        retry_attempts: int = 2,
        retry_base_delay: float = 0.2,
        retry_max_delay: float = 1.0,
        circuit_breaker: Optional[CircuitBreaker] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        metrics: Optional[MetricsCollector] = None,
    ):
        """Configure the provider.

        Parameters
        - base_url: API root, e.g. ``https://api.openai.com/v1``
        - model: Embedding model name sent with each request
        - api_key: Bearer token; without it the provider is unconfigured
        - timeout: Per-request transport timeout in seconds
        - retry_*: Backoff parameters for transient failures
        - circuit_breaker: Shared breaker; one is created if omitted
        - http_client: Injected client (tests use ``httpx.MockTransport``)
        """
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.api_key = api_key
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.retry_base_delay = retry_base_delay
        self.retry_max_delay = retry_max_delay
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=30.0,
            expected_exception=EmbeddingProviderError,
            name="embedding_provider",
        )
        self.metrics = metrics
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def embed(self, text: str) -> List[float]:
        if not self.configured:
            raise ProviderUnavailable("Embedding provider API key is not configured")

        start_time = time.time()
        status = "error"
        try:
            vector = await call_with_retry(
                lambda: self.circuit_breaker.call(self._request_embedding, text),
                operation_name="embedding_request",
                max_attempts=self.retry_attempts,
                base_delay=self.retry_base_delay,
                max_delay=self.retry_max_delay,
                retry_on=(ProviderUnavailable,),
            )
            status = "success"
            return vector
        except CircuitBreakerError as e:
            raise ProviderUnavailable(str(e)) from e
        finally:
            if self.metrics:
                self.metrics.record_embedding(self.model, status, time.time() - start_time)

    async def _request_embedding(self, text: str) -> List[float]:
        """POST to the provider and extract the first embedding."""
        try:
            response = await self._http_client.post(
                f"{self.base_url}/embeddings",
                json={"model": self.model, "input": text},
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise ProviderTimeout(f"Embedding request timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise ProviderUnavailable(f"Embedding request failed: {e}") from e

        if response.status_code != 200:
            raise ProviderUnavailable(f"Embedding provider returned status {response.status_code}")

        try:
            embedding = response.json()["data"][0]["embedding"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderUnavailable(f"Malformed embedding response: {e}") from e

        if not embedding:
            raise ProviderUnavailable("Embedding provider returned an empty vector")

        logger.debug("Query embedding generated", model=self.model, dimension=len(embedding))
        return [float(value) for value in embedding]

    async def close(self) -> None:
        await self._http_client.aclose()
