"""Service-local runtime helpers (metrics facade)."""
