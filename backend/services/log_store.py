# backend/services/log_store.py
from typing import Dict, List, Protocol, Set, Union

from services.log_models import LogEntry, LogFilter, NewLogEntry, StoreKind


class LogStore(Protocol):
    """Capability shared by the durable (Redis) and in-memory stores."""

    kind: StoreKind

    async def append(self, entry: Union[LogEntry, NewLogEntry]) -> LogEntry:
        """Record an entry, stamping id and time when it is still a draft."""
        ...

    async def list(self, log_filter: LogFilter, limit: int, offset: int = 0) -> List[LogEntry]:
        """Entries matching the filter, newest first."""
        ...

    async def counts_by_level(self) -> Dict[str, int]:
        ...

    async def sources(self) -> Set[str]:
        ...
