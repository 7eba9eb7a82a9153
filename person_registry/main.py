"""FastAPI application entry point for the person registry service.

Application Lifecycle Diagram
===========================
::
    ┌─────────────┐
    │  uvicorn    │
    │  startup    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ startup:     │
    │ init_db()    │
    │ manager.init │
    └──────┬───────┘
           ▼
    ┌─────────────┐
    │ Serve HTTP  │
    │ requests    │
    └──────┬──────┘
           ▼
    ┌──────────────┐
    │ lifespan()   │
    │ shutdown:    │
    │ close redis  │
    │ close_db()   │
    └──────────────┘

How to Use
===========
**Step 1: Run with uvicorn**::
    uvicorn person_registry.main:app --host 0.0.0.0 --port 9999

**Step 2: Make API calls**::
    curl -i -X POST http://localhost:9999/pessoas \
         -H "Content-Type: application/json" \
         -d '{"apelido": "zeca", "nome": "Jose", "nascimento": "1990-01-01", "stack": ["rust"]}'

    curl http://localhost:9999/pessoas?t=rust
    curl http://localhost:9999/contagem-pessoas

Key Behaviours
===============
- The pessoas table and its trigram index are created on startup.
- Redis clients are shared by every request and closed on shutdown.
- Prometheus metrics are exposed at /metrics.

Configuration:
    See person_registry/config.py for all available settings.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from person_registry.config import get_settings
from person_registry.database import close_db, init_db
from person_registry.dependencies import _service_manager
from person_registry.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Person registry with unique nicknames and cached lookups",
    lifespan=lifespan,
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
