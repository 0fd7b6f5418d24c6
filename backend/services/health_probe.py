# backend/services/health_probe.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from database.connection import ping_database
from services.log_models import ServiceCheck, ServiceStatus

logger = logging.getLogger(__name__)


class HealthProbe:
    """Reports reachability of Redis and the relational store.

    Purely diagnostic: it shares the clients with the rest of the process but
    never changes which store LogService uses.
    """

    def __init__(self, redis_client: Any = None, engine: Optional[AsyncEngine] = None, timeout: float = 3.0):
        self.redis_client = redis_client
        self.engine = engine
        self.timeout = timeout

    async def check(self) -> ServiceStatus:
        """Ping both backends concurrently. Never raises."""
        durable, relational = await asyncio.gather(
            self._check_durable(),
            self._check_relational(),
        )
        return ServiceStatus(durable_store=durable, relational_store=relational)

    async def _check_durable(self) -> ServiceCheck:
        if self.redis_client is None:
            return ServiceCheck(available=False, message="Redis is not configured (REDIS_URL missing)")

        async def _ping():
            pong = await self.redis_client.ping()
            if pong is not True and pong != "PONG":
                raise RuntimeError(f"Unexpected response from Redis ping: {pong!r}")

        return await self._run("Redis", _ping)

    async def _check_relational(self) -> ServiceCheck:
        if self.engine is None:
            return ServiceCheck(available=False, message="Database is not configured (DATABASE_URL missing)")

        return await self._run("Database", lambda: ping_database(self.engine))

    async def _run(self, name: str, ping: Callable[[], Awaitable[None]]) -> ServiceCheck:
        try:
            await asyncio.wait_for(ping(), timeout=self.timeout)
            return ServiceCheck(available=True, message=f"{name} connection successful")
        except asyncio.TimeoutError:
            logger.warning(f"⚠ {name} ping timed out after {self.timeout}s")
            return ServiceCheck(available=False, message=f"{name} ping timed out after {self.timeout}s")
        except Exception as e:
            logger.warning(f"⚠ {name} ping failed: {e}")
            return ServiceCheck(available=False, message=str(e) or type(e).__name__)
