"""Vault search service package.

Layout:
- ``api``: HTTP endpoint for document search.
- ``hybrid``: filters, lexical and semantic matchers, and the orchestrator.
- ``ranking``: result fusion and response enrichment.
- ``runtime``: service-local metrics helpers.
"""
