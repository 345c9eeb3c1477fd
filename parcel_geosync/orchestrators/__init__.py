"""Request-scoped pipeline orchestration."""
