"""Activity log record models.

Entries are:
- Immutable once stamped (frozen pydantic models).
- Ordered by a numeric score built from the creation millisecond and a
  per-process sequence number, so same-millisecond bursts still sort by
  append order.
- Serialised with camelCase aliases (``userEmail``) on the wire and in Redis.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, JsonValue, field_validator

from services.clock import SEQUENCE_SPAN, make_score

LogLevel = Literal["debug", "info", "success", "warning", "error"]
LOG_LEVELS = ("debug", "info", "success", "warning", "error")

TimeRange = Literal["24h", "7d", "30d"]
TIME_RANGES = {
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
}

StoreKind = Literal["durable", "memory"]


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def empty_counts() -> Dict[str, int]:
    """Counts with every level present and zeroed."""
    return {level: 0 for level in LOG_LEVELS}


class NewLogEntry(BaseModel):
    """A validated entry that has not been stamped with id and time yet."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    level: LogLevel
    message: str
    source: str
    user_email: Optional[str] = Field(default=None, alias="userEmail")

    # Free-form JSON payload, stored verbatim and never interpreted. Values
    # that would not survive a JSON round trip are rejected here.
    details: Optional[Dict[str, JsonValue]] = None

    @field_validator("message", "source")
    @classmethod
    def _not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("user_email")
    @classmethod
    def _blank_email_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    def stamped(self, entry_id: str, timestamp_ms: int, sequence: int) -> "LogEntry":
        return LogEntry(
            id=entry_id,
            timestamp=timestamp_ms,
            sequence=sequence,
            created_at=datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc),
            level=self.level,
            message=self.message,
            source=self.source,
            user_email=self.user_email,
            details=self.details,
        )


class LogEntry(NewLogEntry):
    """A recorded activity log entry."""

    id: str
    # Epoch milliseconds.
    timestamp: int
    sequence: int = Field(default=0, ge=0, lt=SEQUENCE_SPAN)
    created_at: datetime

    @property
    def score(self) -> int:
        return make_score(self.timestamp, self.sequence)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class LogFilter(BaseModel):
    """Optional predicates applied to a query. Unset fields match everything."""

    model_config = ConfigDict(frozen=True)

    level: Optional[LogLevel] = None
    source: Optional[str] = None
    search: Optional[str] = None
    time_range: Optional[TimeRange] = None

    @field_validator("level", "source", "search", "time_range", mode="before")
    @classmethod
    def _blank_is_unset(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @property
    def needs_scan(self) -> bool:
        """True when the predicates cannot be answered from the time index alone."""
        return bool(self.level or self.source or self.search)

    def min_timestamp_ms(self, now: Optional[datetime] = None) -> Optional[int]:
        if self.time_range is None:
            return None
        now = now or utc_now()
        return int((now - TIME_RANGES[self.time_range]).timestamp() * 1000)

    def matches(self, entry: LogEntry, min_timestamp_ms: Optional[int] = None) -> bool:
        if self.level and entry.level != self.level:
            return False
        if self.source and entry.source != self.source:
            return False
        if self.search and self.search.lower() not in entry.message.lower():
            return False
        if min_timestamp_ms is not None and entry.timestamp < min_timestamp_ms:
            return False
        return True


class RecordResult(BaseModel):
    entry: LogEntry
    store: StoreKind
    fallback: bool = False


class LogQueryResult(BaseModel):
    entries: List[LogEntry]
    store: StoreKind
    fallback: bool = False


class LogStatus(BaseModel):
    counts: Dict[str, int]
    sources: List[str]
    total: int
    store: StoreKind
    fallback: bool = False
    timestamp: datetime = Field(default_factory=utc_now)


class ServiceCheck(BaseModel):
    available: bool
    message: str


class ServiceStatus(BaseModel):
    """Point-in-time reachability report. Recomputed on every probe."""

    model_config = ConfigDict(populate_by_name=True)

    durable_store: ServiceCheck = Field(alias="durableStore")
    relational_store: ServiceCheck = Field(alias="relationalStore")
    timestamp: datetime = Field(default_factory=utc_now)
