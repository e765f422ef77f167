"""Small HTTP-related constants shared across Courier.

This module is intentionally tiny to avoid circular imports and drift.
"""

from __future__ import annotations

# Methods that may be repeated without additional side effects.
IDEMPOTENT_METHODS: frozenset[str] = frozenset({"GET", "HEAD", "PUT", "DELETE"})

DEFAULT_CHARSET = "utf-8"
