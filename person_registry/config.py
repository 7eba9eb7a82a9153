"""Configuration management for the person registry service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

Flow Diagram: get_settings()
=============================
::
    ┌─────────────┐
    │  Call get_  │
    │  settings() │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Check cache  │
    │ (lru_cache)  │
    └──────┬──────┘
    HIT?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Create  │  │ Return  │
│ Settings│  │ cached  │
│ instance│  │ value   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1: Import**::
    from person_registry.config import get_settings

**Step 2: Get settings**::
    settings = get_settings()
    db_url = settings.DATABASE_URL

**Step 3: Override through the environment**::
    CACHE_ENABLED=false RELEASE_RESERVATION_ON_PERSIST_FAILURE=true uvicorn ...

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Nickname reservations live in one Redis set (NICKNAME_SET_KEY) shared by
  every instance of the service.
- The compensating release of a reservation after a failed insert is off by
  default; the orphaned nickname stays reserved unless it is switched on.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "person-registry"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL
    DATABASE_URL: str = "postgresql+asyncpg://registry:registry@db:5432/registry"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 30
    DATABASE_POOL_TIMEOUT_SECONDS: float = 120.0
    DATABASE_COMMAND_TIMEOUT_SECONDS: float = 10.0

    # Redis
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_REPLICA_URL: str = ""
    REDIS_SOCKET_TIMEOUT_SECONDS: float = 2.0

    # Nickname reservation
    NICKNAME_SET_KEY: str = "apelidos"
    RESERVATION_TIMEOUT_SECONDS: float = 2.0
    RELEASE_RESERVATION_ON_PERSIST_FAILURE: bool = False

    # Person cache
    CACHE_ENABLED: bool = True
    PERSON_CACHE_KEY_PREFIX: str = "pessoa:"

    # Search
    SEARCH_RESULT_LIMIT: int = 50

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
