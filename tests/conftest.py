"""
Shared fixtures for search tests.
"""

import pytest
from prometheus_client import CollectorRegistry

from vaultlibs.common.metrics import MetricsCollector
from vaultlibs.document_store.memory import InMemoryDocumentStore

from .fakes import make_document


@pytest.fixture
def documents():
    """A small vault spanning two scopes and several categories."""
    return [
        make_document(
            "1", "March Invoice", days_ago=10,
            category="Financial", file_type="application/pdf",
            extracted_text="Invoice total due 120 EUR", vault_scope="user-1",
        ),
        make_document(
            "2", "Report", days_ago=5,
            category="Medical", file_type="application/pdf",
            extracted_text="Blood test report", vault_scope="user-1",
        ),
        make_document(
            "3", "Car insurance policy", days_ago=30,
            category="Insurance", file_type="image/jpeg",
            ai_summary="Annual car insurance policy renewal",
            tags=("insurance", "car"), vault_scope="user-1",
        ),
        make_document(
            "4", "Tax return 2023", days_ago=60,
            category="Tax", file_type="application/pdf",
            extracted_text="Income tax return and deductions", vault_scope="family-9",
        ),
    ]


@pytest.fixture
def store(documents):
    return InMemoryDocumentStore(documents)


@pytest.fixture
def metrics():
    """Collector on a private registry so tests do not share counters."""
    return MetricsCollector("test-service", registry=CollectorRegistry())
