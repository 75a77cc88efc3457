from __future__ import annotations

from datetime import datetime
from typing import List, Optional

import pytest

from tcping.errors import ConnectFailure

START_MS = 1_000_000


class FakeClock:
    """Manually advanced millisecond clock."""

    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def now_ms(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms

    def to_datetime(self, timestamp_ms: int) -> datetime:
        return datetime.fromtimestamp(timestamp_ms / 1000.0)


class ScriptedConnector:
    """Connector replaying a script of RTTs; ``None`` entries fail.

    Each attempt advances the clock by the RTT it reports.
    """

    def __init__(self, clock: FakeClock, script: List[Optional[float]]) -> None:
        self.clock = clock
        self.script = list(script)
        self.calls: List[tuple] = []

    def attempt_connect(self, address: str, port: int, timeout: float) -> float:
        self.calls.append((address, port, timeout))
        rtt = self.script.pop(0)
        if rtt is None:
            raise ConnectFailure("Connection refused")
        self.clock.advance(int(rtt))
        return rtt


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
