"""Tests for the vault search service.

Unit tests run against in-memory stores and fakes; no PostgreSQL, Redis or
embedding endpoint is required.
"""
