# backend/services/clock.py
import threading
import time
import uuid
from typing import Callable, Tuple

# Sequence numbers live in the low-order decimal digits of the score:
# score = timestamp_ms * SEQUENCE_SPAN + sequence
SEQUENCE_SPAN = 1000


def _wall_clock_ms() -> int:
    return time.time_ns() // 1_000_000


def new_entry_id() -> str:
    return uuid.uuid4().hex


def make_score(timestamp_ms: int, sequence: int) -> int:
    return timestamp_ms * SEQUENCE_SPAN + sequence


class SequenceClock:
    """Hands out (timestamp_ms, sequence) stamps with a strictly increasing score.

    Entries stamped in the same millisecond get consecutive sequence numbers.
    When a millisecond runs out of sequence numbers, or the wall clock moves
    backwards, the clock keeps counting from the last issued stamp instead.
    """

    def __init__(self, time_ms: Callable[[], int] = _wall_clock_ms):
        self._time_ms = time_ms
        self._lock = threading.Lock()
        self._last_ms = -1
        self._sequence = 0

    def stamp(self) -> Tuple[int, int]:
        with self._lock:
            now = self._time_ms()
            if now > self._last_ms:
                self._last_ms = now
                self._sequence = 0
            else:
                self._sequence += 1
                if self._sequence >= SEQUENCE_SPAN:
                    # borrow the next millisecond
                    self._last_ms += 1
                    self._sequence = 0
            return self._last_ms, self._sequence
