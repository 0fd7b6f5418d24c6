# backend/services/runtime.py
import logging
from typing import Any, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from config.settings import Settings
from database.connection import create_engine
from services.audit_sink import AuditSink
from services.clock import SequenceClock
from services.health_probe import HealthProbe
from services.log_service import LogService
from services.memory_log_store import InMemoryLogStore
from services.redis_log_store import RedisLogStore, create_redis_client

logger = logging.getLogger(__name__)


class Runtime:
    """Process-wide clients and services, built once at startup and passed in."""

    def __init__(
        self,
        log_service: LogService,
        health_probe: HealthProbe,
        redis_client: Any = None,
        engine: Optional[AsyncEngine] = None
    ):
        self.log_service = log_service
        self.health_probe = health_probe
        self.redis_client = redis_client
        self.engine = engine

    async def close(self):
        """Close shared connections"""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            logger.info("✓ Closed Redis connection")

        if self.engine is not None:
            await self.engine.dispose()
            logger.info("✓ Disposed database engine")


def build_runtime(settings: Settings, audit_sink: Optional[AuditSink] = None) -> Runtime:
    """Wire clients, stores, LogService and HealthProbe from settings"""
    clock = SequenceClock()

    redis_client = None
    durable_store = None
    if settings.REDIS_URL:
        redis_client = create_redis_client(settings.REDIS_URL, settings.REDIS_TIMEOUT)
        durable_store = RedisLogStore(
            redis_client,
            prefix=settings.LOG_KEY_PREFIX,
            timeout=settings.REDIS_TIMEOUT,
            retry_backoff=settings.STORE_RETRY_BACKOFF,
            scan_batch=settings.QUERY_SCAN_BATCH,
            scan_limit=settings.QUERY_SCAN_LIMIT,
            clock=clock,
        )
        logger.info("✓ Durable log store configured")
    else:
        logger.warning("⚠ REDIS_URL not set, activity logs are kept in memory only")

    engine = create_engine(
        settings.DATABASE_URL,
        timeout=settings.DATABASE_TIMEOUT,
        echo=settings.DEBUG,
    )

    log_service = LogService(
        memory_store=InMemoryLogStore(settings.MEMORY_MAX_ENTRIES, clock=clock),
        durable_store=durable_store,
        audit_sink=audit_sink,
        clock=clock,
        default_limit=settings.DEFAULT_QUERY_LIMIT,
        max_limit=settings.MAX_QUERY_LIMIT,
    )
    health_probe = HealthProbe(
        redis_client=redis_client,
        engine=engine,
        timeout=settings.HEALTH_TIMEOUT,
    )

    return Runtime(
        log_service=log_service,
        health_probe=health_probe,
        redis_client=redis_client,
        engine=engine,
    )
