"""Tests for the HTTP embedding provider."""

import json

import httpx
import pytest

from vaultlibs.common.circuit_breaker import CircuitBreaker, CircuitBreakerState
from vaultlibs.embeddings.base import ProviderTimeout, ProviderUnavailable
from vaultlibs.embeddings.http import HttpEmbeddingProvider


def make_provider(handler, metrics=None, **kwargs):
    kwargs.setdefault("api_key", "sk-test")
    kwargs.setdefault("retry_attempts", 2)
    kwargs.setdefault("retry_base_delay", 0.0)
    kwargs.setdefault("retry_max_delay", 0.0)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return HttpEmbeddingProvider(
        base_url="https://embeddings.test/v1/",
        model="text-embedding-ada-002",
        http_client=client,
        metrics=metrics,
        **kwargs
    )


@pytest.mark.asyncio
async def test_embed_posts_openai_payload(metrics):
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["auth"] = request.headers["Authorization"]
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"data": [{"embedding": [0.1, 0.2, 0.3]}]})

    provider = make_provider(handler, metrics=metrics)
    vector = await provider.embed("car insurance")

    assert vector == [0.1, 0.2, 0.3]
    assert captured["url"] == "https://embeddings.test/v1/embeddings"
    assert captured["auth"] == "Bearer sk-test"
    assert captured["body"] == {"model": "text-embedding-ada-002", "input": "car insurance"}
    assert metrics.registry.get_sample_value(
        "vault_embedding_requests_total",
        {"model_name": "text-embedding-ada-002", "status": "success"},
    ) == 1.0
    await provider.close()


@pytest.mark.asyncio
async def test_unconfigured_provider_raises_without_calling():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"data": [{"embedding": [1.0]}]})

    provider = make_provider(handler, api_key=None)

    assert not provider.configured
    with pytest.raises(ProviderUnavailable):
        await provider.embed("tax")
    assert calls == []


@pytest.mark.asyncio
async def test_error_status_is_retried_then_unavailable(metrics):
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503, json={"error": "overloaded"})

    provider = make_provider(handler, metrics=metrics, retry_attempts=3)

    with pytest.raises(ProviderUnavailable):
        await provider.embed("tax")
    assert len(calls) == 3
    assert metrics.registry.get_sample_value(
        "vault_embedding_requests_total",
        {"model_name": "text-embedding-ada-002", "status": "error"},
    ) == 1.0


@pytest.mark.asyncio
async def test_transient_failure_recovers_on_retry():
    responses = [
        httpx.Response(500),
        httpx.Response(200, json={"data": [{"embedding": [0.5, 0.5]}]}),
    ]

    def handler(request):
        return responses.pop(0)

    provider = make_provider(handler)
    assert await provider.embed("tax") == [0.5, 0.5]


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [
    {"data": []},
    {"data": [{"embedding": []}]},
    {"unexpected": True},
])
async def test_malformed_response_is_unavailable(body):
    provider = make_provider(lambda request: httpx.Response(200, json=body))
    with pytest.raises(ProviderUnavailable):
        await provider.embed("tax")


@pytest.mark.asyncio
async def test_transport_timeout_is_provider_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    provider = make_provider(handler)
    with pytest.raises(ProviderTimeout):
        await provider.embed("tax")


@pytest.mark.asyncio
async def test_connection_error_is_unavailable():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    provider = make_provider(handler, retry_attempts=1)
    with pytest.raises(ProviderUnavailable):
        await provider.embed("tax")


@pytest.mark.asyncio
async def test_open_circuit_short_circuits_requests():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(503)

    breaker = CircuitBreaker(failure_threshold=2, recovery_timeout=60.0, expected_exception=Exception)
    provider = make_provider(handler, circuit_breaker=breaker, retry_attempts=2)

    with pytest.raises(ProviderUnavailable):
        await provider.embed("tax")
    assert breaker.get_state() == CircuitBreakerState.OPEN

    with pytest.raises(ProviderUnavailable, match="open"):
        await provider.embed("tax")
    assert len(calls) == 2
