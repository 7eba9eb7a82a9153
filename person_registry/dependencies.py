"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject database and cache dependencies
with consistent naming across all API endpoints, using a singleton pattern for
shared resources to minimize per-request overhead.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

import redis.asyncio as redis
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from person_registry.config import Settings, get_settings
from person_registry.database import get_db
from person_registry.person_service import PersonService
from person_registry.redis import close_redis, get_redis, get_redis_read


LOG_FORMAT = (
    "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    " [request_id=%(request_id)s trace_id=%(trace_id)s client_ip=%(client_ip)s tags=%(tags)s]"
)
REQUEST_LOG_FIELDS = ("request_id", "trace_id", "client_ip", "tags")


class RequestFieldsFilter(logging.Filter):
    """Fill request fields with "-" on records logged outside a request."""

    def filter(self, record: logging.LogRecord) -> bool:
        for name in REQUEST_LOG_FIELDS:
            if not hasattr(record, name):
                setattr(record, name, "-")
        return True


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Holds the settings, the configured logger and the process-wide Redis
    clients. The database session is the only per-request resource.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self.cache_writer = await get_redis()
            self.cache_reader = await get_redis_read()
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("person_registry")
        if not logger.handlers:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(LOG_FORMAT))
            handler.addFilter(RequestFieldsFilter())
            logger.addHandler(handler)
            logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        await close_redis()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request context with tracking information and shared resources.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        trace_id: Correlation ID for distributed tracing
        client_ip: Client IP address
        start_time: Request start timestamp
        tags: Request tags for categorization
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    trace_id: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())
    tags: list[str] = field(default_factory=list)

    @property
    def cache_writer(self) -> redis.Redis:
        """Get shared Redis primary client."""
        return self.service_manager.cache_writer

    @property
    def cache_reader(self) -> redis.Redis:
        """Get shared Redis replica client."""
        return self.service_manager.cache_reader

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Get shared logger with request context."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "trace_id": self.trace_id or self.request_id,
                "client_ip": self.client_ip,
                "tags": ",".join(self.tags),
            },
        )

    @property
    def settings(self) -> Settings:
        """Get shared settings."""
        return self.service_manager.settings

    def add_tag(self, tag: str) -> None:
        """Add a tag to the request context."""
        if tag not in self.tags:
            self.tags.append(tag)

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    """Get the singleton service manager, initializing it on first use."""
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    """Build the request context from the incoming request.

    Args:
        request: FastAPI Request object for extracting client info
        db: Database session (only per-request resource)
        manager: Singleton service manager with shared resources

    Returns:
        RequestContext: Context for the request
    """
    client_ip = request.client.host if request.client else None
    trace_id = request.headers.get("x-trace-id")

    return RequestContext(
        database=db,
        service_manager=manager,
        trace_id=trace_id,
        client_ip=client_ip,
    )


def get_person_service(ctx: RequestContext = Depends(get_request_context)) -> PersonService:
    """Create a person service bound to the request context."""
    return PersonService.from_context(ctx)
