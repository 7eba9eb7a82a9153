"""SQLAlchemy ORM models for the person registry.

This module defines the database schema using SQLAlchemy declarative models.

Data Model Layout
=================
::
    pessoas table
    ├─ id (UUID PRIMARY KEY, generated by the service)
    ├─ apelido (VARCHAR(32) UNIQUE NOT NULL)
    ├─ nome (VARCHAR(100) NOT NULL)
    ├─ nascimento (DATE NOT NULL)
    ├─ stack (VARCHAR(32)[] NULL)
    └─ search_text (VARCHAR NOT NULL, trigram GIN index)

How to Use
===========
**Step 1: Import**::
    from person_registry.models import Person

**Step 2: Insert**::
    person = Person(id=uuid.uuid4(), apelido="zeca", nome="Jose",
                    nascimento=datetime.date(1990, 1, 1), stack=["rust"])
    await PersonRepository(db).insert(person, build_search_text(...))

**Step 3: Query**::
    result = await db.execute(select(Person).where(Person.id == person_id))
    person = result.scalar_one_or_none()

Key Behaviours
===============
- The UNIQUE constraint on apelido is a backstop; the Redis reservation set
  is what actually keeps nicknames unique.
- search_text is denormalized from nome, apelido and stack at insert time and
  never exposed through the API.
- Rows are never updated.

Classes:
    Person:  A registered person.
"""

import datetime
import uuid
from typing import Optional

from sqlalchemy import ARRAY, Date, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from person_registry.database import Base

__all__ = ["Person"]


class Person(Base):
    __tablename__ = "pessoas"
    __table_args__ = (
        Index(
            "idx_pessoas_search_text_trgm",
            "search_text",
            postgresql_using="gin",
            postgresql_ops={"search_text": "gin_trgm_ops"},
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True)
    apelido: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    nome: Mapped[str] = mapped_column(String(100), nullable=False)
    nascimento: Mapped[datetime.date] = mapped_column(Date, nullable=False)
    stack: Mapped[Optional[list[str]]] = mapped_column(ARRAY(String(32)), nullable=True)
    search_text: Mapped[str] = mapped_column(String, nullable=False, default="")

    def __repr__(self) -> str:
        return f"<Person(id={self.id}, apelido='{self.apelido}')>"
