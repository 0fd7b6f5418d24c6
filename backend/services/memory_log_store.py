# backend/services/memory_log_store.py
import bisect
import logging
import threading
from collections import Counter
from typing import Dict, List, Optional, Set, Union

from services.clock import SequenceClock, new_entry_id
from services.errors import StoreCapacityError
from services.log_models import LogEntry, LogFilter, NewLogEntry, empty_counts

logger = logging.getLogger(__name__)

class InMemoryLogStore:
    """Process-local fallback store - NOT durable across restarts.

    Used only while Redis is unreachable so the application keeps working.
    Holds at most ``max_entries`` entries; the oldest are evicted first and
    counts/sources always describe exactly the retained window.
    """

    kind = "memory"

    def __init__(self, max_entries: int = 1000, clock: Optional[SequenceClock] = None):
        self.max_entries = max_entries
        self.clock = clock or SequenceClock()
        self._lock = threading.Lock()
        self._entries: List[LogEntry] = []  # sorted by score, oldest first
        self._scores: List[int] = []
        self._level_counts: Counter = Counter()
        self._source_counts: Counter = Counter()
        self.stats = {
            'total_appended': 0,
            'total_evicted': 0
        }

    @property
    def size(self) -> int:
        return len(self._entries)

    async def append(self, entry: Union[LogEntry, NewLogEntry]) -> LogEntry:
        """Add an entry, evicting the oldest when full"""
        if self.max_entries < 1:
            logger.error("✗ In-memory log store has no capacity, dropping entry")
            raise StoreCapacityError("In-memory log store has no capacity")

        if not isinstance(entry, LogEntry):
            timestamp_ms, sequence = self.clock.stamp()
            entry = entry.stamped(new_entry_id(), timestamp_ms, sequence)

        with self._lock:
            index = bisect.bisect_right(self._scores, entry.score)
            self._scores.insert(index, entry.score)
            self._entries.insert(index, entry)
            self._level_counts[entry.level] += 1
            self._source_counts[entry.source] += 1
            self.stats['total_appended'] += 1

            while len(self._entries) > self.max_entries:
                self._evict_oldest()

        return entry

    def _evict_oldest(self):
        evicted = self._entries.pop(0)
        self._scores.pop(0)
        self._level_counts[evicted.level] -= 1
        self._source_counts[evicted.source] -= 1
        if self._source_counts[evicted.source] <= 0:
            del self._source_counts[evicted.source]
        self.stats['total_evicted'] += 1

    async def list(self, log_filter: LogFilter, limit: int, offset: int = 0) -> List[LogEntry]:
        """Get matching entries, newest first"""
        min_timestamp = log_filter.min_timestamp_ms()
        results: List[LogEntry] = []
        skipped = 0

        with self._lock:
            for entry in reversed(self._entries):
                if not log_filter.matches(entry, min_timestamp):
                    continue
                if skipped < offset:
                    skipped += 1
                    continue
                results.append(entry)
                if len(results) >= limit:
                    break

        return results

    async def counts_by_level(self) -> Dict[str, int]:
        counts = empty_counts()
        with self._lock:
            for level, count in self._level_counts.items():
                counts[level] = count
        return counts

    async def sources(self) -> Set[str]:
        with self._lock:
            return set(self._source_counts)

    def get_stats(self) -> Dict[str, int]:
        return {
            **self.stats,
            'current_size': self.size,
            'max_size': self.max_entries
        }
