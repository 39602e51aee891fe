"""Shared libraries for the document vault services.

Subpackages:
- ``vaultlibs.common``: configuration, logging, metrics, events, resilience.
- ``vaultlibs.document_store``: read-only document record access.
- ``vaultlibs.vector_store``: nearest-neighbour lookups over document embeddings.
- ``vaultlibs.embeddings``: query embedding providers.

Notes:
- Avoid search-specific ranking logic here; keep modules reusable by any
  vault service that reads documents.
"""
