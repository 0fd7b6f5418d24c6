# backend/services/log_service.py
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple, TypeVar

from pydantic import ValidationError as PydanticValidationError

from services.audit_sink import AuditSink, LoggerAuditSink
from services.clock import SequenceClock, new_entry_id
from services.errors import FallbackExhausted, StoreUnavailable, ValidationError
from services.log_models import (
    LogFilter,
    LogQueryResult,
    LogStatus,
    NewLogEntry,
    RecordResult,
    StoreKind,
)
from services.log_store import LogStore
from services.memory_log_store import InMemoryLogStore

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _describe(exc: PydanticValidationError):
    for error in exc.errors():
        field = ".".join(str(part) for part in error["loc"]) or "body"
        yield f"{field}: {error['msg']}"


class LogService:
    """Single entry point for recording and reading activity logs.

    Recording never fails because of storage: if Redis is unreachable the
    entry goes to the in-memory store and the result is tagged ``fallback``.
    Reads prefer Redis and only fall back to memory when it holds entries
    recorded during the outage; otherwise the outage is reported.
    """

    def __init__(
        self,
        memory_store: InMemoryLogStore,
        durable_store: Optional[LogStore] = None,
        audit_sink: Optional[AuditSink] = None,
        clock: Optional[SequenceClock] = None,
        default_limit: int = 100,
        max_limit: int = 1000
    ):
        self.memory_store = memory_store
        self.durable_store = durable_store
        self.audit_sink = audit_sink or LoggerAuditSink()
        self.clock = clock or SequenceClock()
        self.default_limit = default_limit
        self.max_limit = max_limit

    @property
    def durable_configured(self) -> bool:
        return self.durable_store is not None

    # ============================================
    # RECORD
    # ============================================

    async def record(
        self,
        level: str,
        message: str,
        source: str,
        user_email: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> RecordResult:
        """Validate, audit, then append durably or to the in-memory fallback"""
        try:
            draft = NewLogEntry(
                level=level,
                message=message,
                source=source,
                user_email=user_email,
                details=details,
            )
        except PydanticValidationError as e:
            raise ValidationError(_describe(e)) from e

        # Stamp once so a fallback append keeps the same id and position.
        timestamp_ms, sequence = self.clock.stamp()
        entry = draft.stamped(new_entry_id(), timestamp_ms, sequence)

        self.audit_sink.emit(entry)

        if self.durable_store is not None:
            try:
                stored = await self.durable_store.append(entry)
                return RecordResult(entry=stored, store="durable", fallback=False)
            except StoreUnavailable as e:
                logger.warning(f"⚠ Durable log store unavailable, using memory fallback: {e}")

        try:
            stored = await self.memory_store.append(entry)
        except Exception as e:
            logger.error(f"✗ In-memory fallback failed for log entry {entry.id}: {e}")
            raise FallbackExhausted(
                f"Log entry {entry.id} could not be stored: {e}", cause=e
            ) from e

        return RecordResult(entry=stored, store="memory", fallback=True)

    async def log_debug(self, message: str, source: str, user_email: Optional[str] = None, details=None) -> RecordResult:
        return await self.record("debug", message, source, user_email, details)

    async def log_info(self, message: str, source: str, user_email: Optional[str] = None, details=None) -> RecordResult:
        return await self.record("info", message, source, user_email, details)

    async def log_success(self, message: str, source: str, user_email: Optional[str] = None, details=None) -> RecordResult:
        return await self.record("success", message, source, user_email, details)

    async def log_warning(self, message: str, source: str, user_email: Optional[str] = None, details=None) -> RecordResult:
        return await self.record("warning", message, source, user_email, details)

    async def log_error(self, message: str, source: str, user_email: Optional[str] = None, details=None) -> RecordResult:
        return await self.record("error", message, source, user_email, details)

    # ============================================
    # READ
    # ============================================

    async def _read(self, operation: Callable[[LogStore], Awaitable[T]]) -> Tuple[T, StoreKind, bool]:
        """Run a read against the active store.

        Returns the result, the store that answered and whether it was the
        fallback.
        """
        if self.durable_store is None:
            return await operation(self.memory_store), "memory", True

        try:
            return await operation(self.durable_store), "durable", False
        except StoreUnavailable as e:
            if self.memory_store.size == 0:
                logger.error(f"✗ Log query failed: {e}")
                raise
            logger.warning(f"⚠ Serving log query from memory fallback: {e}")
            return await operation(self.memory_store), "memory", True

    def _page(self, limit: Optional[int], offset: Optional[int]) -> Tuple[int, int]:
        limit = self.default_limit if limit is None else limit
        offset = 0 if offset is None else offset

        errors = []
        if not 1 <= limit <= self.max_limit:
            errors.append(f"limit: must be between 1 and {self.max_limit}")
        if offset < 0:
            errors.append("offset: must not be negative")
        if errors:
            raise ValidationError(errors)
        return limit, offset

    async def query(
        self,
        log_filter: Optional[LogFilter] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = 0
    ) -> LogQueryResult:
        """Matching entries, newest first"""
        log_filter = log_filter or LogFilter()
        limit, offset = self._page(limit, offset)

        entries, store, fallback = await self._read(
            lambda s: s.list(log_filter, limit, offset)
        )
        return LogQueryResult(entries=entries, store=store, fallback=fallback)

    async def counts(self) -> Dict[str, int]:
        counts, _, _ = await self._read(lambda s: s.counts_by_level())
        return counts

    async def sources(self) -> Set[str]:
        sources, _, _ = await self._read(lambda s: s.sources())
        return sources

    async def status(self) -> LogStatus:
        """Counts, sources and total, all read from the same store"""

        async def _snapshot(store: LogStore):
            return await store.counts_by_level(), await store.sources()

        (counts, sources), store, fallback = await self._read(_snapshot)
        return LogStatus(
            counts=counts,
            sources=sorted(sources),
            total=sum(counts.values()),
            store=store,
            fallback=fallback,
        )
