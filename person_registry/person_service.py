"""Person Service Layer - Core Business Logic

This module orchestrates nickname reservation, durable storage and the person
cache for every API operation.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    PersonService                            │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ Nickname        │  │ Person          │  │ Person       │ │
    │  │ Reservation     │  │ Repository      │  │ Cache        │ │
    │  │                 │  │                 │  │ (optional)   │ │
    │  │ • SADD / SREM   │  │ • insert        │  │ • SET        │ │
    │  │                 │  │ • get / search  │  │ • GET        │ │
    │  │                 │  │ • count         │  │              │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                    │                    │
                ▼                    ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐  ┌─────────────────┐
    │ Redis primary   │  │   PostgreSQL    │  │ Redis primary / │
    │ (apelidos set)  │  │   (pessoas)     │  │ replica         │
    └─────────────────┘  └─────────────────┘  └─────────────────┘

Person Creation Flow
--------------------
::
    ┌─────────────┐
    │ POST        │
    │ /pessoas    │  validated
    └──────┬──────┘
           ▼
    ┌─────────────┐  denied      ┌──────────────────────┐
    │ SADD        ├─────────────▶│ DuplicateNickname    │
    │ apelidos    │  error       │ ReservationBackend-  │
    └──────┬──────┘─────────────▶│ Unavailable          │
           ▼ reserved            └──────────────────────┘
    ┌─────────────┐  error       ┌──────────────────────┐
    │ INSERT      ├─────────────▶│ StoreError (nickname │
    │ pessoas     │              │ stays reserved)      │
    └──────┬──────┘              └──────────────────────┘
           ▼ persisted
    ┌─────────────┐
    │ SET cache   │  best-effort
    └──────┬──────┘
           ▼ cached
    ┌─────────────┐
    │ 201 +       │
    │ Location    │
    └─────────────┘

Person Lookup Flow
------------------
::
    ┌─────────────┐
    │ GET         │
    │ /pessoas/id │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache GET   │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ SELECT  │  │ Return  │
│ by id   │  │ cached  │
└────┬────┘  │ JSON    │
     ▼       └─────────┘
┌─────────┐
│ Cache   │
│ result  │
└─────────┘

Search and count go straight to PostgreSQL.

Usage Example
=============
```python
@router.post("/pessoas", status_code=201)
async def create_person(
    payload: PersonCreate,
    service: PersonService = Depends(get_person_service),
) -> Response:
    person_id = await service.create_person(payload)
    return Response(status_code=201, headers={"Location": f"/pessoas/{person_id}"})
```
"""

import logging
import time
import uuid
from typing import Optional

from prometheus_client import Counter, Histogram

from person_registry.cache import PersonCache
from person_registry.config import Settings, get_settings
from person_registry.enums import CacheStatus, CreationStage, RequestStatus
from person_registry.exceptions import (
    CacheError,
    ConflictError,
    DuplicateNicknameError,
    ReservationBackendUnavailable,
    StoreError,
)
from person_registry.models import Person
from person_registry.repository import PersonRepository
from person_registry.reservation import NicknameReservation
from person_registry.schemas import PersonCreate, PersonResponse

__all__ = ["PersonService", "build_search_text"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

PERSON_CREATION_REQUESTS_TOTAL = Counter(
    "person_registry_creation_requests_total",
    "Total person creation requests by terminal stage",
    ["stage"],
)
PERSON_CREATION_STAGES_TOTAL = Counter(
    "person_registry_creation_stages_total",
    "Person creations that reached each stage",
    ["stage"],
)
PERSON_CREATION_DURATION = Histogram(
    "person_registry_creation_duration_seconds",
    "Time taken to create a person",
    buckets=[0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5],
)
PERSON_LOOKUP_REQUESTS_TOTAL = Counter(
    "person_registry_lookup_requests_total",
    "Total get-by-id requests",
    ["status", "cache_hit"],
)
PERSON_LOOKUP_DURATION = Histogram(
    "person_registry_lookup_duration_seconds",
    "Time taken to look up a person by id",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CACHE_ERRORS_TOTAL = Counter(
    "person_registry_cache_errors_total",
    "Person cache failures swallowed by the service",
    ["operation"],
)
ORPHANED_RESERVATIONS_TOTAL = Counter(
    "person_registry_orphaned_reservations_total",
    "Nicknames left reserved after a failed insert",
)


def build_search_text(nome: str, apelido: str, stack: Optional[list[str]]) -> str:
    """Lowercased "nome apelido stack..." used for substring search."""
    stack_text = " ".join(stack) if stack else ""
    return f"{nome} {apelido} {stack_text}".lower()


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================

class PersonService:
    """Core service class for person registry operations.

    The cache is optional. With ``cache=None`` every lookup goes to the
    store and creations skip the cache write; behaviour is otherwise the same.

    Example:
        >>> ctx = RequestContext(database=db, service_manager=manager, ...)
        >>> service = PersonService.from_context(ctx)
        >>> person_id = await service.create_person(PersonCreate(...))
    """

    def __init__(
        self,
        reservations: NicknameReservation,
        repository: PersonRepository,
        cache: Optional[PersonCache] = None,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
        settings: Optional[Settings] = None,
    ):
        self._reservations = reservations
        self._repository = repository
        self._cache = cache
        self._logger = logger or logging.getLogger("person_registry")
        self._settings = settings or get_settings()

    @classmethod
    def from_context(cls, ctx: 'RequestContext') -> 'PersonService':
        """Build a service from the request context's shared resources.

        Reservations always use the primary Redis client. The cache reads from
        the replica client when one is configured.
        """
        settings = ctx.settings
        cache = None
        if settings.CACHE_ENABLED:
            cache = PersonCache(
                ctx.cache_writer,
                ctx.cache_reader,
                key_prefix=settings.PERSON_CACHE_KEY_PREFIX,
            )
        return cls(
            reservations=NicknameReservation(
                ctx.cache_writer,
                key=settings.NICKNAME_SET_KEY,
                timeout=settings.RESERVATION_TIMEOUT_SECONDS,
            ),
            repository=PersonRepository(ctx.database, search_limit=settings.SEARCH_RESULT_LIMIT),
            cache=cache,
            logger=ctx.logger,
            settings=settings,
        )

    @property
    def logger(self) -> logging.Logger | logging.LoggerAdapter:
        return self._logger

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create_person(self, payload: PersonCreate) -> uuid.UUID:
        """Reserve the nickname, persist the person and cache it.

        Args:
            payload: Already validated creation request

        Returns:
            uuid.UUID: The generated identifier

        Raises:
            DuplicateNicknameError: The nickname is already reserved
            ReservationBackendUnavailable: Redis could not answer the reservation
            StoreError: The insert failed; the nickname stays reserved unless
                RELEASE_RESERVATION_ON_PERSIST_FAILURE is set and the failure
                is not a ConflictError
        """
        start_time = time.perf_counter()
        person_id = uuid.uuid4()
        self._logger.info(f"Creating person {person_id} with nickname: {payload.apelido}")
        self._enter_stage(CreationStage.VALIDATED)

        try:
            granted = await self._reservations.reserve(payload.apelido)
        except ReservationBackendUnavailable as exc:
            self._finish_creation(CreationStage.RESERVATION_UNAVAILABLE, start_time)
            self._logger.error(f"Nickname reservation unavailable for {payload.apelido}: {exc}")
            raise

        if not granted:
            self._finish_creation(CreationStage.RESERVATION_DENIED, start_time)
            self._logger.warning(f"Nickname already taken: {payload.apelido}")
            raise DuplicateNicknameError(payload.apelido)
        self._enter_stage(CreationStage.RESERVED)

        person = Person(
            id=person_id,
            apelido=payload.apelido,
            nome=payload.nome,
            nascimento=payload.nascimento,
            stack=payload.stack,
        )
        try:
            await self._repository.insert(
                person,
                build_search_text(payload.nome, payload.apelido, payload.stack),
            )
        except StoreError as exc:
            self._finish_creation(CreationStage.PERSIST_FAILED, start_time)
            if isinstance(exc, ConflictError):
                # A stored row holds the nickname, so the reservation must stay.
                self._logger.error(f"Store rejected reserved nickname {payload.apelido}: {exc}")
            else:
                self._logger.error(f"Failed to persist person {person_id}: {exc}")
                await self._compensate_reservation(payload.apelido)
            raise
        self._enter_stage(CreationStage.PERSISTED)

        serialized = PersonResponse.from_create(person_id, payload).model_dump_json()
        await self._cache_person(person_id, serialized)

        duration = self._finish_creation(CreationStage.CACHED, start_time)
        self._logger.info(f"Person created: {person_id} in {duration:.3f}s")
        return person_id

    async def lookup_person_by_id(self, person_id: uuid.UUID) -> Optional[str]:
        """Return the person's JSON serialization, or None if unknown.

        A cache hit is returned as stored, without consulting the store.

        Raises:
            StoreError: The cache missed and the store failed
        """
        start_time = time.perf_counter()

        cached = await self._lookup_from_cache(person_id)
        if cached:
            PERSON_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            PERSON_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.HIT).inc()
            self._logger.debug(f"Cache hit for person {person_id}")
            return cached

        try:
            person = await self._repository.get_by_id(person_id)
        except StoreError as exc:
            PERSON_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
            PERSON_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR, cache_hit=CacheStatus.MISS).inc()
            self._logger.error(f"Person lookup failed for {person_id}: {exc}")
            raise

        PERSON_LOOKUP_DURATION.observe(time.perf_counter() - start_time)
        if person is None:
            PERSON_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=CacheStatus.MISS).inc()
            return None

        PERSON_LOOKUP_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.MISS).inc()
        serialized = PersonResponse.model_validate(person).model_dump_json()
        await self._cache_person(person_id, serialized)
        return serialized

    async def search_people(self, term: str) -> list[PersonResponse]:
        try:
            people = await self._repository.search(term)
        except StoreError as exc:
            self._logger.error(f"Search failed for term {term!r}: {exc}")
            raise
        return [PersonResponse.model_validate(person) for person in people]

    async def count_people(self) -> int:
        try:
            return await self._repository.count()
        except StoreError as exc:
            self._logger.error(f"Count failed: {exc}")
            raise

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    def _enter_stage(self, stage: CreationStage) -> None:
        PERSON_CREATION_STAGES_TOTAL.labels(stage=stage).inc()

    def _finish_creation(self, stage: CreationStage, start_time: float) -> float:
        assert stage.is_terminal, f"stage must be terminal, got {stage!r}"
        self._enter_stage(stage)
        duration = time.perf_counter() - start_time
        PERSON_CREATION_DURATION.observe(duration)
        PERSON_CREATION_REQUESTS_TOTAL.labels(stage=stage).inc()
        return duration

    async def _compensate_reservation(self, nickname: str) -> None:
        """Release a reservation whose insert failed, when configured to.

        A failing release is logged and swallowed so the caller still sees
        the original StoreError.
        """
        if not self._settings.RELEASE_RESERVATION_ON_PERSIST_FAILURE:
            ORPHANED_RESERVATIONS_TOTAL.inc()
            self._logger.warning(f"Nickname {nickname} remains reserved without a stored person")
            return

        try:
            await self._reservations.release(nickname)
            self._logger.info(f"Released reservation for nickname {nickname}")
        except ReservationBackendUnavailable as exc:
            ORPHANED_RESERVATIONS_TOTAL.inc()
            self._logger.error(f"Could not release reservation for {nickname}: {exc}")

    async def _lookup_from_cache(self, person_id: uuid.UUID) -> Optional[str]:
        if self._cache is None:
            return None
        try:
            return await self._cache.get_by_id(person_id)
        except CacheError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get").inc()
            self._logger.warning(f"Cache read failed, falling back to store: {exc}")
            return None

    async def _cache_person(self, person_id: uuid.UUID, serialized: str) -> None:
        if self._cache is None:
            return
        try:
            await self._cache.put(person_id, serialized)
        except CacheError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="set").inc()
            self._logger.warning(f"Cache write failed for person {person_id}: {exc}")
