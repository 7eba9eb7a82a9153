"""Shared pytest fixtures: Redis mocks, an in-memory store and an API client."""

import asyncio
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Optional
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
import redis.asyncio as redis
from httpx import ASGITransport, AsyncClient

from person_registry.cache import PersonCache
from person_registry.config import Settings
from person_registry.dependencies import get_person_service, get_request_context
from person_registry.exceptions import ConflictError
from person_registry.main import app
from person_registry.models import Person
from person_registry.person_service import PersonService
from person_registry.reservation import NicknameReservation


# ============================================================================
# TEST DOUBLES
# ============================================================================


def build_mock_redis() -> AsyncMock:
    """Mock Redis client whose set and string commands keep real state.

    SADD checks and inserts without yielding to the event loop, so it is as
    atomic under asyncio.gather as the real command is on the server.
    """
    sets: dict[str, set[str]] = {}
    strings: dict[str, str] = {}

    async def sadd(key: str, *members: str) -> int:
        bucket = sets.setdefault(key, set())
        added = 0
        for member in members:
            if member not in bucket:
                bucket.add(member)
                added += 1
        return added

    async def srem(key: str, *members: str) -> int:
        bucket = sets.setdefault(key, set())
        removed = 0
        for member in members:
            if member in bucket:
                bucket.discard(member)
                removed += 1
        return removed

    async def get(key: str) -> Optional[str]:
        return strings.get(key)

    async def set_(key: str, value: str, **kwargs) -> bool:
        strings[key] = value
        return True

    client = AsyncMock(spec=redis.Redis)
    client.sadd = AsyncMock(side_effect=sadd)
    client.srem = AsyncMock(side_effect=srem)
    client.get = AsyncMock(side_effect=get)
    client.set = AsyncMock(side_effect=set_)
    client.ping = AsyncMock(return_value=True)
    client.sets = sets
    client.strings = strings
    return client


class InMemoryPersonRepository:
    """In-memory stand-in for PersonRepository.

    insert() yields to the event loop once, so concurrent creations interleave
    between reservation and persistence the way they do against PostgreSQL.
    """

    def __init__(self, search_limit: int = 50) -> None:
        self.rows: dict[uuid.UUID, Person] = {}
        self.search_limit = search_limit
        self.fail_inserts_with: Optional[Exception] = None
        self.fail_reads_with: Optional[Exception] = None
        self.get_calls = 0

    async def insert(self, person: Person, search_text: str) -> None:
        await asyncio.sleep(0)
        if self.fail_inserts_with is not None:
            raise self.fail_inserts_with
        if any(row.apelido == person.apelido for row in self.rows.values()):
            raise ConflictError("Store rejected duplicate nickname", {"apelido": person.apelido})
        person.search_text = search_text
        self.rows[person.id] = person

    async def get_by_id(self, person_id: uuid.UUID) -> Optional[Person]:
        self.get_calls += 1
        if self.fail_reads_with is not None:
            raise self.fail_reads_with
        return self.rows.get(person_id)

    async def search(self, term: str) -> list[Person]:
        if self.fail_reads_with is not None:
            raise self.fail_reads_with
        needle = term.lower()
        matches = [row for row in self.rows.values() if needle in row.search_text]
        return matches[: self.search_limit]

    async def count(self) -> int:
        if self.fail_reads_with is not None:
            raise self.fail_reads_with
        return len(self.rows)


# ============================================================================
# SERVICE FIXTURES
# ============================================================================


@pytest.fixture
def settings() -> Settings:
    return Settings(CACHE_ENABLED=True, RELEASE_RESERVATION_ON_PERSIST_FAILURE=False)


@pytest.fixture
def mock_redis() -> AsyncMock:
    return build_mock_redis()


@pytest.fixture
def redis_factory():
    return build_mock_redis


@pytest.fixture
def repository() -> InMemoryPersonRepository:
    return InMemoryPersonRepository()


@pytest.fixture
def service_logger() -> logging.Logger:
    return logging.getLogger("person_registry.tests")


@pytest.fixture
def person_service(
    mock_redis: AsyncMock,
    repository: InMemoryPersonRepository,
    settings: Settings,
    service_logger: logging.Logger,
) -> PersonService:
    return PersonService(
        reservations=NicknameReservation(mock_redis, key=settings.NICKNAME_SET_KEY),
        repository=repository,
        cache=PersonCache(mock_redis, key_prefix=settings.PERSON_CACHE_KEY_PREFIX),
        logger=service_logger,
        settings=settings,
    )


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def request_context(mock_redis: AsyncMock, service_logger: logging.Logger) -> MagicMock:
    ctx = MagicMock()
    ctx.logger = service_logger
    ctx.get_duration.return_value = 0.0
    ctx.database.execute = AsyncMock(return_value=None)
    ctx.cache_writer = mock_redis
    return ctx


@pytest_asyncio.fixture
async def client(
    person_service: PersonService,
    request_context: MagicMock,
) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_request_context] = lambda: request_context
    app.dependency_overrides[get_person_service] = lambda: person_service

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def integration_client() -> AsyncGenerator[AsyncClient, None]:
    """Client against the real app, PostgreSQL and Redis from settings."""
    from person_registry.database import Base, engine, init_db
    from person_registry.dependencies import _service_manager
    from person_registry.redis import get_redis

    await init_db()
    await _service_manager.initialize()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    primary = await get_redis()
    await primary.flushdb()
    await _service_manager.cleanup()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()
