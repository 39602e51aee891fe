"""Hybrid search components for semantic + lexical retrieval.

Includes the ``SearchOrchestrator`` which runs the lexical and semantic
matchers concurrently and the ``SearchManager`` which owns their
collaborators.
"""
