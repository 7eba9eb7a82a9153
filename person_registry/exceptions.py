"""Domain exceptions for the person registry.

Services raise these; routes translate them into HTTP responses.

Exception Hierarchy
===================
::
    PersonRegistryError
    ├─ DuplicateNicknameError         422, empty body
    ├─ ReservationBackendUnavailable  503, empty body
    ├─ StoreError                     500, empty body
    │  └─ ConflictError               500, empty body (backstop constraint tripped)
    └─ CacheError                     never leaves PersonService

Field validation errors are not part of this hierarchy: pydantic raises them
while parsing the request body and FastAPI renders them as 422 responses.
"""

from typing import Any, Optional

__all__ = [
    "CacheError",
    "ConflictError",
    "DuplicateNicknameError",
    "PersonRegistryError",
    "ReservationBackendUnavailable",
    "StoreError",
]


class PersonRegistryError(Exception):
    """Base class for every error raised by the registry's own code."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} ({self.details})"
        return self.message


class DuplicateNicknameError(PersonRegistryError):
    """The nickname is already reserved by another person."""

    def __init__(self, nickname: str) -> None:
        super().__init__(f"Nickname '{nickname}' is already taken", {"apelido": nickname})
        self.nickname = nickname


class ReservationBackendUnavailable(PersonRegistryError):
    """The reservation set could not be reached or timed out.

    The outcome of the reservation is unknown, so the request must fail.
    """


class StoreError(PersonRegistryError):
    """The durable store failed to read or write."""


class ConflictError(StoreError):
    """The store's own uniqueness constraint rejected a row.

    Reaching this after a granted reservation means the reservation set and
    the table disagree.
    """


class CacheError(PersonRegistryError):
    """The person cache failed to read or write."""
