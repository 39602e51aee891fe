"""API subpackage for the search service.

The transport layer stays thin: it parses the request body and delegates to
``SearchManager``.
"""
