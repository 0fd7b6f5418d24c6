# backend/services/redis_log_store.py
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, TypeVar, Union

import redis.asyncio as redis
from pydantic import ValidationError as PydanticValidationError
from redis.exceptions import RedisError

from services.clock import SequenceClock, make_score, new_entry_id
from services.errors import StoreUnavailable
from services.log_models import LOG_LEVELS, LogEntry, LogFilter, NewLogEntry, empty_counts

logger = logging.getLogger(__name__)

T = TypeVar("T")

BACKEND_NAME = "redis"


def create_redis_client(redis_url: str, timeout: float) -> redis.Redis:
    """Build the shared Redis client. No connection is opened until first use."""
    return redis.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
        socket_keepalive=True,
        health_check_interval=30
    )


class RedisLogStore:
    """Durable activity log store on Redis.

    Layout under ``prefix``:
      {prefix}:entry:{id}  JSON body
      {prefix}:index       sorted set of ids scored by timestamp_ms * 1000 + sequence
      {prefix}:counts      hash, one counter per level
      {prefix}:sources     set of source names
    """

    kind = "durable"

    def __init__(
        self,
        client: redis.Redis,
        prefix: str = "activity",
        timeout: float = 3.0,
        retry_backoff: float = 0.1,
        scan_batch: int = 200,
        scan_limit: int = 5000,
        clock: Optional[SequenceClock] = None
    ):
        self.client = client
        self.prefix = prefix
        self.timeout = timeout
        self.retry_backoff = retry_backoff
        self.scan_batch = scan_batch
        self.scan_limit = scan_limit
        self.clock = clock or SequenceClock()

    @property
    def index_key(self) -> str:
        return f"{self.prefix}:index"

    @property
    def counts_key(self) -> str:
        return f"{self.prefix}:counts"

    @property
    def sources_key(self) -> str:
        return f"{self.prefix}:sources"

    def entry_key(self, entry_id: str) -> str:
        return f"{self.prefix}:entry:{entry_id}"

    async def _attempt(self, operation: Callable[[], Awaitable[T]]) -> T:
        try:
            return await asyncio.wait_for(operation(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise StoreUnavailable(BACKEND_NAME, f"timed out after {self.timeout}s") from e
        except (RedisError, OSError) as e:
            raise StoreUnavailable(BACKEND_NAME, str(e) or type(e).__name__) from e

    async def _read(self, operation: Callable[[], Awaitable[T]]) -> T:
        """Run a read, retrying once after a short backoff"""
        try:
            return await self._attempt(operation)
        except StoreUnavailable as e:
            logger.warning(f"⚠ Redis read failed, retrying once: {e}")
            await asyncio.sleep(self.retry_backoff)
            return await self._attempt(operation)

    async def append(self, entry: Union[LogEntry, NewLogEntry]) -> LogEntry:
        """Write body, index, counter and source set in one MULTI/EXEC.

        The transaction is not retried: a replay after a lost reply could
        count the entry twice. The same lost reply means an entry reported as
        failed may still have committed; the caller then also appends it to
        the in-memory fallback, so it can exist in both stores under one id.
        """
        if not isinstance(entry, LogEntry):
            timestamp_ms, sequence = self.clock.stamp()
            entry = entry.stamped(new_entry_id(), timestamp_ms, sequence)

        async def _write():
            pipeline = self.client.pipeline(transaction=True)
            pipeline.set(self.entry_key(entry.id), entry.to_json())
            pipeline.zadd(self.index_key, {entry.id: entry.score})
            pipeline.hincrby(self.counts_key, entry.level, 1)
            pipeline.sadd(self.sources_key, entry.source)
            return await pipeline.execute()

        try:
            await self._attempt(_write)
        except StoreUnavailable as e:
            logger.error(f"✗ Failed to append log entry {entry.id}: {e}")
            raise

        return entry

    async def _load(self, entry_ids: List[str]) -> List[LogEntry]:
        if not entry_ids:
            return []

        keys = [self.entry_key(entry_id) for entry_id in entry_ids]
        bodies = await self._read(lambda: self.client.mget(keys))

        entries = []
        for entry_id, body in zip(entry_ids, bodies):
            if body is None:
                # body expired or removed outside this service
                continue
            try:
                entries.append(LogEntry.model_validate_json(body))
            except PydanticValidationError as e:
                logger.error(f"✗ Failed to decode log entry {entry_id}: {e}")
                continue
        return entries

    async def _index_page(self, min_score: Any, start: int, num: int) -> List[str]:
        return await self._read(
            lambda: self.client.zrevrangebyscore(
                self.index_key, "+inf", min_score, start=start, num=num
            )
        )

    async def list(self, log_filter: LogFilter, limit: int, offset: int = 0) -> List[LogEntry]:
        """Newest-first page of entries matching the filter"""
        min_timestamp = log_filter.min_timestamp_ms()
        min_score = "-inf" if min_timestamp is None else make_score(min_timestamp, 0)

        if not log_filter.needs_scan:
            entry_ids = await self._index_page(min_score, offset, limit)
            return await self._load(entry_ids)

        # Level/source/search are not indexed: scan a bounded window of the
        # time index and filter client-side.
        results: List[LogEntry] = []
        skipped = 0
        position = 0

        while len(results) < limit and position < self.scan_limit:
            batch_size = min(self.scan_batch, self.scan_limit - position)
            entry_ids = await self._index_page(min_score, position, batch_size)
            if not entry_ids:
                break
            position += len(entry_ids)

            for entry in await self._load(entry_ids):
                if not log_filter.matches(entry, min_timestamp):
                    continue
                if skipped < offset:
                    skipped += 1
                    continue
                results.append(entry)
                if len(results) >= limit:
                    break

            if len(entry_ids) < batch_size:
                break

        return results

    async def counts_by_level(self) -> Dict[str, int]:
        raw = await self._read(lambda: self.client.hgetall(self.counts_key))
        counts = empty_counts()
        for level in LOG_LEVELS:
            counts[level] = int(raw.get(level, 0) or 0)
        return counts

    async def sources(self) -> Set[str]:
        members = await self._read(lambda: self.client.smembers(self.sources_key))
        return set(members)
