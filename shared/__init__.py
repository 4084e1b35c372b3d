"""
Shared utilities for the booking flow explorer.

This package is intentionally small and focused. It currently provides:

- `shared.config` for environment-based configuration
- `shared.logging` for structlog-based structured logging

The explorer treats `shared/` as read-only infrastructure code; nothing
here knows about crawling, triggers, or booking flows.
"""
