"""End-to-end tests against running PostgreSQL and Redis.

Run with PERSON_REGISTRY_INTEGRATION=1 and DATABASE_URL / REDIS_URL pointing
at disposable instances; the fixtures drop the table and flush Redis afterwards.
"""

import asyncio
import os

import pytest
from httpx import AsyncClient

INTEGRATION_ENABLED = os.environ.get("PERSON_REGISTRY_INTEGRATION") == "1"

pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not INTEGRATION_ENABLED, reason="PERSON_REGISTRY_INTEGRATION is not set"),
]


@pytest.mark.asyncio
async def test_create_then_duplicate(integration_client: AsyncClient) -> None:
    payload = {"apelido": "zeca", "nome": "Jose", "nascimento": "1990-01-01", "stack": ["rust"]}

    created = await integration_client.post("/pessoas", json=payload)
    duplicate = await integration_client.post("/pessoas", json=payload)

    assert created.status_code == 201
    assert created.headers["location"].startswith("/pessoas/")
    assert duplicate.status_code == 422
    assert duplicate.content == b""


@pytest.mark.asyncio
async def test_concurrent_same_nickname(integration_client: AsyncClient) -> None:
    payload = {"apelido": "joao", "nome": "Joao", "nascimento": "1985-05-20", "stack": ["java", "go"]}

    responses = await asyncio.gather(*(integration_client.post("/pessoas", json=payload) for _ in range(10)))

    statuses = sorted(r.status_code for r in responses)
    assert statuses == [201] + [422] * 9


@pytest.mark.asyncio
async def test_round_trip_search_and_count(integration_client: AsyncClient) -> None:
    before = int((await integration_client.get("/contagem-pessoas")).text)
    payload = {"apelido": "joao", "nome": "Joao Silva", "nascimento": "1985-05-20", "stack": ["java", "go"]}

    created = await integration_client.post("/pessoas", json=payload)
    person_id = created.headers["location"].removeprefix("/pessoas/")

    fetched = await integration_client.get(f"/pessoas/{person_id}")
    assert fetched.json() == {"id": person_id, **payload}

    found = await integration_client.get("/pessoas", params={"t": "jav"})
    assert [p["id"] for p in found.json()] == [person_id]

    missing = await integration_client.get("/pessoas", params={"t": "cobol"})
    assert missing.json() == []

    after = int((await integration_client.get("/contagem-pessoas")).text)
    assert after == before + 1
