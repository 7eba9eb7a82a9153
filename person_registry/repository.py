"""Durable person store on PostgreSQL.

Every method runs on the request's AsyncSession. SQLAlchemy and driver errors
never escape: they are re-raised as StoreError, or ConflictError when the
unique constraint on apelido rejects an insert.
"""

import logging
import uuid
from typing import Optional

from prometheus_client import Counter
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from person_registry.exceptions import ConflictError, StoreError
from person_registry.models import Person

__all__ = ["PersonRepository", "UNIQUE_VIOLATION"]

logger = logging.getLogger(__name__)

# PostgreSQL SQLSTATE for unique_violation
UNIQUE_VIOLATION = "23505"

DATABASE_READS_TOTAL = Counter(
    "person_registry_database_reads_total",
    "Total database read operations",
)
DATABASE_WRITES_TOTAL = Counter(
    "person_registry_database_writes_total",
    "Total database write operations",
)


def _sqlstate(exc: IntegrityError) -> Optional[str]:
    orig = exc.orig
    return getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)


class PersonRepository:
    def __init__(self, session: AsyncSession, search_limit: int = 50) -> None:
        self._db = session
        self._search_limit = search_limit

    async def insert(self, person: Person, search_text: str) -> None:
        """Persist a new person along with its search text.

        Raises:
            ConflictError: The unique constraint on apelido rejected the row.
            StoreError: Any other persistence failure.
        """
        person.search_text = search_text
        try:
            self._db.add(person)
            await self._db.commit()
        except IntegrityError as exc:
            await self._rollback()
            if _sqlstate(exc) == UNIQUE_VIOLATION:
                raise ConflictError(
                    "Store rejected duplicate nickname",
                    {"apelido": person.apelido, "id": str(person.id)},
                ) from exc
            raise StoreError("Store rejected person row", {"id": str(person.id), "error": str(exc.orig)}) from exc
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            await self._rollback()
            raise StoreError("Failed to insert person", {"id": str(person.id), "error": repr(exc)}) from exc
        DATABASE_WRITES_TOTAL.inc()

    async def _rollback(self) -> None:
        """Roll back the failed insert without masking its error.

        A lost connection usually fails the rollback too; the caller still
        raises a StoreError for the original failure.
        """
        try:
            await self._db.rollback()
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            logger.warning(f"Rollback after failed insert also failed: {exc!r}")

    async def get_by_id(self, person_id: uuid.UUID) -> Optional[Person]:
        try:
            result = await self._db.execute(select(Person).where(Person.id == person_id))
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            raise StoreError("Failed to load person", {"id": str(person_id), "error": repr(exc)}) from exc
        DATABASE_READS_TOTAL.inc()
        return result.scalar_one_or_none()

    async def search(self, term: str) -> list[Person]:
        """Return up to search_limit people whose search text contains term.

        The term is matched as a literal, case-insensitively: LIKE wildcards
        in it are escaped and it is lowercased to match the stored text.
        """
        statement = (
            select(Person)
            .where(Person.search_text.contains(term.lower(), autoescape=True))
            .limit(self._search_limit)
        )
        try:
            result = await self._db.execute(statement)
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            raise StoreError("Failed to search people", {"term": term, "error": repr(exc)}) from exc
        DATABASE_READS_TOTAL.inc()
        return list(result.scalars().all())

    async def count(self) -> int:
        try:
            result = await self._db.execute(select(func.count(Person.id)))
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            raise StoreError("Failed to count people", {"error": repr(exc)}) from exc
        DATABASE_READS_TOTAL.inc()
        return int(result.scalar_one())
