"""Common utilities shared across services.

Includes:
- ``config``: Pydantic-based service configuration from environment variables.
- ``logging``: structured logging setup with structlog.
- ``metrics``: Prometheus metrics helpers.
- ``events``: usage events and the Redis-backed analytics sink.
- ``circuit_breaker`` / ``retry``: guards for flaky network collaborators.

Import pattern:
- from vaultlibs.common.config import SearchConfig
- from vaultlibs.common.logging import configure_logging
"""
