"""Time sources used by the prober."""

import time
from datetime import datetime
from typing import Protocol


class Clock(Protocol):
    """Millisecond clock capability."""

    def now_ms(self) -> int:
        ...

    def to_datetime(self, timestamp_ms: int) -> datetime:
        ...


class SystemClock:
    """Monotonic millisecond clock anchored to the wall clock at creation.

    Timestamps never go backwards, and ``to_datetime`` maps them back to local
    wall time for display.
    """

    def __init__(self):
        self._offset_ms = time.time() * 1000 - time.monotonic() * 1000

    def now_ms(self) -> int:
        return int(time.monotonic() * 1000)

    def to_datetime(self, timestamp_ms: int) -> datetime:
        return datetime.fromtimestamp((timestamp_ms + self._offset_ms) / 1000.0)
