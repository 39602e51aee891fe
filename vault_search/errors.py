"""Errors surfaced by the search core.

Only invalid input and lexical (ground-truth) retrieval failures ever reach
the caller. Semantic-path and telemetry failures are recovered where they
happen and never appear here.
"""


class SearchError(Exception):
    """Base class for errors surfaced to search callers."""

    status_code = 500


class InvalidRequest(SearchError):
    """Request rejected before any matcher runs."""

    status_code = 400


class InvalidFilter(InvalidRequest):
    """A filter value is malformed (e.g. unparseable date bounds)."""


class RetrievalFailed(SearchError):
    """The document store could not serve the lexical path."""

    status_code = 502
