"""Nickname reservation backed by a Redis set.

Flow Diagram: reserve()
========================
::
    ┌─────────────┐
    │ reserve(    │
    │  apelido)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ SADD        │
    │ apelidos x  │
    └──────┬──────┘
    ADDED?  │
    ┌─────┴─────┐
    │ 1          │ 0
    ▼            ▼
┌─────────┐  ┌─────────┐
│ granted │  │ denied  │
│ (True)  │  │ (False) │
└─────────┘  └─────────┘

Key Behaviours
===============
- SADD is the only check: there is no SISMEMBER beforehand, so two concurrent
  reservations of one nickname cannot both be granted.
- Reservations never expire and are only removed by release().
- Connection errors and timeouts raise ReservationBackendUnavailable; the
  caller never gets a guessed answer.
"""

import asyncio

import redis.asyncio as redis
from prometheus_client import Counter
from redis.exceptions import RedisError

from person_registry.exceptions import ReservationBackendUnavailable

__all__ = ["NicknameReservation"]

RESERVATION_ATTEMPTS_TOTAL = Counter(
    "person_registry_reservation_attempts_total",
    "Nickname reservation attempts by outcome",
    ["outcome"],
)
RESERVATION_RELEASES_TOTAL = Counter(
    "person_registry_reservation_releases_total",
    "Nickname reservations released after a failed insert",
)


class NicknameReservation:
    """Claims nicknames in a shared Redis set.

    Must be given a client pointing at the Redis primary.
    """

    def __init__(self, client: redis.Redis, key: str = "apelidos", timeout: float = 2.0) -> None:
        self._client = client
        self._key = key
        self._timeout = timeout

    async def reserve(self, nickname: str) -> bool:
        assert isinstance(nickname, str) and nickname, f"nickname must be a non-empty string, got {nickname!r}"
        try:
            added = await asyncio.wait_for(self._client.sadd(self._key, nickname), timeout=self._timeout)
        except (RedisError, OSError, TimeoutError) as exc:
            RESERVATION_ATTEMPTS_TOTAL.labels(outcome="unavailable").inc()
            raise ReservationBackendUnavailable(
                "Nickname reservation backend unavailable",
                {"apelido": nickname, "error": repr(exc)},
            ) from exc

        granted = int(added) == 1
        RESERVATION_ATTEMPTS_TOTAL.labels(outcome="granted" if granted else "denied").inc()
        return granted

    async def release(self, nickname: str) -> bool:
        """Remove a reservation. Returns whether the nickname was reserved."""
        try:
            removed = await asyncio.wait_for(self._client.srem(self._key, nickname), timeout=self._timeout)
        except (RedisError, OSError, TimeoutError) as exc:
            raise ReservationBackendUnavailable(
                "Could not release nickname reservation",
                {"apelido": nickname, "error": repr(exc)},
            ) from exc
        RESERVATION_RELEASES_TOTAL.inc()
        return int(removed) == 1
