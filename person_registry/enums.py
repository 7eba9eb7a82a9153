"""Shared enums for the person registry.

This module defines all status and state enums used across the codebase.
Using enums instead of string literals provides type safety and prevents typos.
"""

from enum import StrEnum

__all__ = ["CacheStatus", "CreationStage", "HealthStatus", "RequestStatus"]


class HealthStatus(StrEnum):
    """Health check status values."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"


class RequestStatus(StrEnum):
    """Request status values for metrics and logging."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    ERROR = "error"


class CacheStatus(StrEnum):
    """Cache status values for metrics."""

    HIT = "true"
    MISS = "false"


class CreationStage(StrEnum):
    """Stages a person creation passes through.

    The happy path is VALIDATED → RESERVED → PERSISTED → CACHED. The remaining
    members are terminal failures. CACHED is reached even when the cache write
    is skipped or fails, since caching is best-effort. Every stage a creation
    reaches is counted in person_registry_creation_stages_total.
    """

    VALIDATED = "validated"
    RESERVED = "reserved"
    PERSISTED = "persisted"
    CACHED = "cached"
    RESERVATION_DENIED = "reservation_denied"
    RESERVATION_UNAVAILABLE = "reservation_unavailable"
    PERSIST_FAILED = "persist_failed"

    @property
    def is_terminal(self) -> bool:
        return self in (
            CreationStage.CACHED,
            CreationStage.RESERVATION_DENIED,
            CreationStage.RESERVATION_UNAVAILABLE,
            CreationStage.PERSIST_FAILED,
        )
