"""FastAPI route definitions for the person registry REST API.

API Endpoint Overview
=====================
::
    GET  /health
        └─ HealthResponse (200)

    POST /pessoas
        ├─ PersonCreate (request body)
        └─ 201 + Location, 422 (validation / duplicate nickname), 500, 503

    GET  /pessoas/{id}
        └─ PersonResponse (200) or 404

    GET  /pessoas?t=<term>
        └─ list[PersonResponse] (200, at most 50)

    GET  /contagem-pessoas
        └─ plain-text integer (200)

Request Flow Diagram
====================
::
    ┌─────────────┐
    │  HTTP       │
    │  Request    │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Validate &  │
    │ Parse       │
    │ (Pydantic)  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Inject      │
    │ Dependencies│
    │ (DB, Redis) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ PersonService│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Map domain  │
    │ errors to   │
    │ status codes│
    └─────────────┘

Key Behaviours
===============
- Duplicate nicknames and server-side failures answer with an empty body;
  only field validation errors carry a JSON error list.
- A cache hit on GET /pessoas/{id} is returned byte-for-byte as cached.
- An id that is not a UUID is reported as 404, like an unknown one.
"""

import uuid

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import PlainTextResponse
from sqlalchemy import text

from person_registry.dependencies import RequestContext, get_person_service, get_request_context
from person_registry.enums import HealthStatus
from person_registry.exceptions import DuplicateNicknameError, ReservationBackendUnavailable, StoreError
from person_registry.person_service import PersonService
from person_registry.schemas import HealthResponse, PersonCreate, PersonResponse

__all__ = ["router"]

router = APIRouter()


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.cache_writer.ping()
    except Exception as e:
        ctx.logger.error(f"Redis health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    ctx.logger.info(f"Health check completed: {status.value}")
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.post("/pessoas", status_code=201, tags=["pessoas"])
async def create_person(
    payload: PersonCreate,
    ctx: RequestContext = Depends(get_request_context),
    service: PersonService = Depends(get_person_service),
) -> Response:
    ctx.add_tag("person_creation")

    try:
        person_id = await service.create_person(payload)
    except DuplicateNicknameError:
        return Response(status_code=422)
    except ReservationBackendUnavailable:
        return Response(status_code=503)
    except StoreError:
        return Response(status_code=500)

    ctx.logger.info(f"Person created: {person_id} in {ctx.get_duration():.1f}ms")
    return Response(status_code=201, headers={"Location": f"/pessoas/{person_id}"})


@router.get("/pessoas/{person_id}", response_model=PersonResponse, tags=["pessoas"])
async def get_person(
    person_id: str,
    ctx: RequestContext = Depends(get_request_context),
    service: PersonService = Depends(get_person_service),
) -> Response:
    ctx.add_tag("lookup")

    try:
        parsed_id = uuid.UUID(person_id)
    except ValueError:
        return Response(status_code=404)

    try:
        serialized = await service.lookup_person_by_id(parsed_id)
    except StoreError:
        return Response(status_code=500)

    if serialized is None:
        ctx.logger.info(f"Person not found: {person_id}")
        return Response(status_code=404)
    return Response(content=serialized, media_type="application/json")


@router.get("/pessoas", response_model=list[PersonResponse], tags=["pessoas"])
async def search_people(
    t: str = Query(..., description="Substring of name, nickname or stack"),
    ctx: RequestContext = Depends(get_request_context),
    service: PersonService = Depends(get_person_service),
):
    ctx.add_tag("search")

    try:
        return await service.search_people(t)
    except StoreError:
        return Response(status_code=500)


@router.get("/contagem-pessoas", response_class=PlainTextResponse, tags=["pessoas"])
async def count_people(service: PersonService = Depends(get_person_service)) -> Response:
    try:
        total = await service.count_people()
    except StoreError:
        return Response(status_code=500)
    return PlainTextResponse(str(total))
