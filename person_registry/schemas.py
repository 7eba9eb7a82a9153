"""Pydantic schemas for request/response validation in the person registry.

Schema Hierarchy
=================
::
    PersonCreate (Input)
    ├─ apelido: str (1-32 chars, also accepted as "nickname")
    ├─ nome: str (1-100 chars)
    ├─ nascimento: date (YYYY-MM-DD)
    └─ stack: list[str] | None (each item ≤32 chars)

    PersonResponse (Output, and the cached payload)
    ├─ id: UUID
    ├─ apelido, nome, nascimento, stack

    HealthResponse (Output)
    ├─ status, database, cache

Key Behaviours
===============
- Field validation is complete before the service sees a payload; the
  service never re-checks lengths.
- A client-supplied "id" is ignored; identifiers are always generated.
- Values are never coerced into strings: {"nome": 1} is a 422, not "1".
- PersonResponse.model_dump_json() is exactly what the cache stores and what
  GET /pessoas/{id} returns on a cache hit.

Classes:
    PersonCreate:  Input schema for POST /pessoas.
    PersonResponse:  Output schema and cached serialization of a person.
    HealthResponse:  Output schema for health checks.
"""

import datetime
import uuid
from typing import Annotated, Optional

from pydantic import AliasChoices, BaseModel, Field, StringConstraints

from person_registry.enums import HealthStatus

__all__ = ["HealthResponse", "PersonCreate", "PersonResponse", "StackItem"]

StackItem = Annotated[str, StringConstraints(max_length=32)]


class PersonCreate(BaseModel):
    apelido: str = Field(
        ...,
        min_length=1,
        max_length=32,
        validation_alias=AliasChoices("apelido", "nickname"),
    )
    nome: str = Field(..., min_length=1, max_length=100)
    nascimento: datetime.date
    stack: Optional[list[StackItem]] = None


class PersonResponse(BaseModel):
    id: uuid.UUID
    apelido: str
    nome: str
    nascimento: datetime.date
    stack: Optional[list[str]] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_create(cls, person_id: uuid.UUID, payload: PersonCreate) -> "PersonResponse":
        return cls(
            id=person_id,
            apelido=payload.apelido,
            nome=payload.nome,
            nascimento=payload.nascimento,
            stack=payload.stack,
        )


class HealthResponse(BaseModel):
    status: HealthStatus
    database: HealthStatus
    cache: HealthStatus
