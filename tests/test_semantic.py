"""Tests for the semantic matcher and its degradation paths."""

import asyncio

import pytest

from vault_search.hybrid.semantic import SemanticMatcher, similarity_to_score
from vault_search.models import MatchType
from vaultlibs.document_store.models import SearchFilters
from vaultlibs.embeddings.base import ProviderTimeout, ProviderUnavailable
from vaultlibs.vector_store.base import VectorIndexQueryError

from .fakes import FakeEmbeddingProvider, FakeVectorIndex, make_document


@pytest.fixture
def neighbours():
    return [
        (make_document("7", "Home contents policy", category="Insurance", vault_scope="user-1"), 0.9),
        (make_document("8", "Travel cover", category="Insurance", vault_scope="user-1"), 0.74),
        (make_document("9", "Gym membership", category="Other", vault_scope="user-1"), 0.71),
        (make_document("10", "Recipe", category="Other", vault_scope="user-1"), 0.4),
    ]


def degradations(metrics, reason):
    return metrics.registry.get_sample_value("vault_semantic_degradations_total", {"reason": reason})


@pytest.mark.parametrize("similarity,score", [(0.9, 90), (0.744, 74), (0.746, 75), (0.7, 70), (1.0, 100)])
def test_similarity_to_score(similarity, score):
    assert similarity_to_score(similarity) == score


@pytest.mark.asyncio
async def test_scores_and_threshold(neighbours):
    index = FakeVectorIndex(neighbours)
    matcher = SemanticMatcher(FakeEmbeddingProvider(), index)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert not page.degraded
    assert [(r.id, r.relevance_score) for r in page.results] == [("7", 90), ("8", 74), ("9", 71)]
    assert all(r.match_type == MatchType.SEMANTIC for r in page.results)
    assert page.results[0].similarity == 0.9
    assert index.requests[0]["threshold"] == 0.70


@pytest.mark.asyncio
async def test_candidate_cap_has_a_floor(neighbours):
    index = FakeVectorIndex(neighbours)
    matcher = SemanticMatcher(FakeEmbeddingProvider(), index, min_candidates=20)

    await matcher.search("insurance", SearchFilters(), limit=5, offset=0)
    await matcher.search("insurance", SearchFilters(), limit=10, offset=10)

    assert [r["limit"] for r in index.requests] == [20, 40]


@pytest.mark.asyncio
async def test_filters_apply_to_semantic_results(neighbours):
    matcher = SemanticMatcher(FakeEmbeddingProvider(), FakeVectorIndex(neighbours))
    page = await matcher.search("insurance", SearchFilters(category="Other"), limit=20, offset=0)
    assert [r.id for r in page.results] == ["9"]


@pytest.mark.asyncio
async def test_explicit_scope_is_passed_to_index(neighbours):
    index = FakeVectorIndex(neighbours)
    matcher = SemanticMatcher(FakeEmbeddingProvider(), index)

    page = await matcher.search("insurance", SearchFilters(vault_scope="family-9"), limit=20, offset=0, scope="user-1")

    assert index.requests[0]["scope"] == "family-9"
    assert page.results == []


@pytest.mark.asyncio
@pytest.mark.parametrize("error,reason", [
    (ProviderUnavailable("503 from provider"), "provider_unavailable"),
    (ProviderTimeout("read timeout"), "provider_timeout"),
    (RuntimeError("boom"), "error"),
])
async def test_provider_failure_degrades_to_empty(neighbours, metrics, error, reason):
    matcher = SemanticMatcher(FakeEmbeddingProvider(error=error), FakeVectorIndex(neighbours), metrics=metrics)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert page.degraded
    assert page.results == []
    assert page.total_count == 0
    assert degradations(metrics, reason) == 1.0


@pytest.mark.asyncio
async def test_unconfigured_provider_is_never_called(neighbours, metrics):
    provider = FakeEmbeddingProvider(configured=False)
    matcher = SemanticMatcher(provider, FakeVectorIndex(neighbours), metrics=metrics)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert page.degraded
    assert provider.calls == 0
    assert not matcher.available
    assert degradations(metrics, "unconfigured") == 1.0


@pytest.mark.asyncio
async def test_missing_provider_degrades(neighbours):
    matcher = SemanticMatcher(None, FakeVectorIndex(neighbours))
    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)
    assert page.degraded


@pytest.mark.asyncio
async def test_slow_provider_times_out(neighbours, metrics):
    provider = FakeEmbeddingProvider(delay=5.0)
    matcher = SemanticMatcher(provider, FakeVectorIndex(neighbours), timeout=0.05, metrics=metrics)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert page.degraded
    assert page.results == []
    assert provider.cancelled
    assert degradations(metrics, "provider_timeout") == 1.0


@pytest.mark.asyncio
async def test_vector_index_failure_degrades(metrics):
    index = FakeVectorIndex(error=VectorIndexQueryError("dimension mismatch"))
    matcher = SemanticMatcher(FakeEmbeddingProvider(), index, metrics=metrics)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert page.degraded
    assert degradations(metrics, "index_error") == 1.0


@pytest.mark.asyncio
async def test_inner_cancellation_degrades_to_empty(neighbours, metrics):
    provider = FakeEmbeddingProvider(error=asyncio.CancelledError())
    matcher = SemanticMatcher(provider, FakeVectorIndex(neighbours), metrics=metrics)

    page = await matcher.search("insurance", SearchFilters(), limit=20, offset=0)

    assert page.degraded
    assert page.results == []
    assert degradations(metrics, "cancelled") == 1.0


@pytest.mark.asyncio
async def test_request_cancellation_propagates(neighbours):
    provider = FakeEmbeddingProvider(delay=5.0)
    matcher = SemanticMatcher(provider, FakeVectorIndex(neighbours), timeout=10.0)

    task = asyncio.create_task(matcher.search("insurance", SearchFilters(), limit=20, offset=0))
    await asyncio.sleep(0.01)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert provider.cancelled


@pytest.mark.asyncio
async def test_unpaginated_results_keep_total(neighbours):
    matcher = SemanticMatcher(FakeEmbeddingProvider(), FakeVectorIndex(neighbours))

    page = await matcher.search("insurance", SearchFilters(), limit=1, offset=0, paginate_results=False)
    assert len(page.results) == 3
    assert page.total_count == 3

    page = await matcher.search("insurance", SearchFilters(), limit=1, offset=1)
    assert [r.id for r in page.results] == ["8"]
    assert page.total_count == 3
