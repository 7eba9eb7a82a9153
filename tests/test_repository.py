"""PersonRepository tests against a mocked AsyncSession."""

import datetime
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from person_registry.exceptions import ConflictError, StoreError
from person_registry.models import Person
from person_registry.repository import UNIQUE_VIOLATION, PersonRepository


class FakeDriverError(Exception):
    def __init__(self, sqlstate: str) -> None:
        super().__init__(f"driver error {sqlstate}")
        self.sqlstate = sqlstate


@pytest.fixture
def mock_database() -> AsyncMock:
    db = AsyncMock(spec=AsyncSession)
    db.execute = AsyncMock()
    db.add = MagicMock()
    db.commit = AsyncMock()
    db.rollback = AsyncMock()
    return db


@pytest.fixture
def sample_person() -> Person:
    return Person(
        id=uuid.UUID("0b6a1c57-8f0e-4a49-a1a6-5d7d5c1d2e3f"),
        apelido="joao",
        nome="Joao Silva",
        nascimento=datetime.date(1985, 5, 20),
        stack=["java", "go"],
    )


@pytest.mark.asyncio
async def test_insert_success(mock_database, sample_person) -> None:
    repository = PersonRepository(mock_database)

    await repository.insert(sample_person, "joao silva joao java go")

    assert sample_person.search_text == "joao silva joao java go"
    mock_database.add.assert_called_once_with(sample_person)
    mock_database.commit.assert_awaited_once()
    mock_database.rollback.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_unique_violation_raises_conflict(mock_database, sample_person) -> None:
    mock_database.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError(UNIQUE_VIOLATION))
    repository = PersonRepository(mock_database)

    with pytest.raises(ConflictError) as exc_info:
        await repository.insert(sample_person, "x")

    assert exc_info.value.details["apelido"] == "joao"
    mock_database.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_other_integrity_error_raises_store_error(mock_database, sample_person) -> None:
    # 23502: not_null_violation
    mock_database.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError("23502"))
    repository = PersonRepository(mock_database)

    with pytest.raises(StoreError) as exc_info:
        await repository.insert(sample_person, "x")

    assert not isinstance(exc_info.value, ConflictError)
    mock_database.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_connection_failure_raises_store_error(mock_database, sample_person) -> None:
    mock_database.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
    repository = PersonRepository(mock_database)

    with pytest.raises(StoreError):
        await repository.insert(sample_person, "x")
    mock_database.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_failed_rollback_still_raises_store_error(mock_database, sample_person) -> None:
    mock_database.commit.side_effect = OperationalError("INSERT", {}, Exception("connection lost"))
    mock_database.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("connection lost"))
    repository = PersonRepository(mock_database)

    with pytest.raises(StoreError):
        await repository.insert(sample_person, "x")
    mock_database.rollback.assert_awaited_once()


@pytest.mark.asyncio
async def test_insert_conflict_survives_failed_rollback(mock_database, sample_person) -> None:
    mock_database.commit.side_effect = IntegrityError("INSERT", {}, FakeDriverError(UNIQUE_VIOLATION))
    mock_database.rollback.side_effect = OperationalError("ROLLBACK", {}, Exception("connection lost"))
    repository = PersonRepository(mock_database)

    with pytest.raises(ConflictError):
        await repository.insert(sample_person, "x")


@pytest.mark.asyncio
async def test_get_by_id_found(mock_database, sample_person) -> None:
    result = MagicMock()
    result.scalar_one_or_none.return_value = sample_person
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database)

    person = await repository.get_by_id(sample_person.id)

    assert person is sample_person
    mock_database.execute.assert_awaited_once()


@pytest.mark.asyncio
async def test_get_by_id_missing(mock_database) -> None:
    result = MagicMock()
    result.scalar_one_or_none.return_value = None
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database)

    assert await repository.get_by_id(uuid.uuid4()) is None


@pytest.mark.asyncio
async def test_get_by_id_failure_raises_store_error(mock_database) -> None:
    mock_database.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
    repository = PersonRepository(mock_database)

    with pytest.raises(StoreError):
        await repository.get_by_id(uuid.uuid4())


@pytest.mark.asyncio
async def test_search_lowercases_term_and_applies_limit(mock_database, sample_person) -> None:
    result = MagicMock()
    result.scalars.return_value.all.return_value = [sample_person]
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database, search_limit=7)

    people = await repository.search("JAV")

    assert people == [sample_person]
    statement = mock_database.execute.call_args.args[0]
    compiled = statement.compile()
    assert "LIKE" in str(compiled)
    assert "jav" in compiled.params.values()
    assert 7 in compiled.params.values()


@pytest.mark.asyncio
async def test_search_default_limit_is_50(mock_database) -> None:
    result = MagicMock()
    result.scalars.return_value.all.return_value = []
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database)

    await repository.search("node")

    statement = mock_database.execute.call_args.args[0]
    assert 50 in statement.compile().params.values()


@pytest.mark.asyncio
async def test_search_escapes_like_wildcards(mock_database) -> None:
    result = MagicMock()
    result.scalars.return_value.all.return_value = []
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database)

    await repository.search("50%_")

    statement = mock_database.execute.call_args.args[0]
    assert "50/%/_" in statement.compile().params.values()


@pytest.mark.asyncio
async def test_count(mock_database) -> None:
    result = MagicMock()
    result.scalar_one.return_value = 3
    mock_database.execute.return_value = result
    repository = PersonRepository(mock_database)

    assert await repository.count() == 3


@pytest.mark.asyncio
async def test_count_failure_raises_store_error(mock_database) -> None:
    mock_database.execute.side_effect = OperationalError("SELECT", {}, Exception("connection lost"))
    repository = PersonRepository(mock_database)

    with pytest.raises(StoreError):
        await repository.count()
