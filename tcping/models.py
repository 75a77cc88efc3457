"""Data models for TCP probe statistics."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from .errors import ResolutionError


class State(Enum):
    """Classification of the probe stream so far."""
    UNINITIALIZED = 'uninitialized'
    UP = 'up'
    DOWN = 'down'


class Transition(Enum):
    """What a single probe did to the up/down state."""
    NONE = 'none'
    FIRST = 'first'
    UP_TO_DOWN = 'up_to_down'
    DOWN_TO_UP = 'down_to_up'


@dataclass(frozen=True)
class LongestStreak:
    """A closed run of same-classification probes."""
    start: Optional[int] = None  # monotonic ms
    end: Optional[int] = None  # monotonic ms, None = never set
    duration_seconds: float = 0.0

    @classmethod
    def between(cls, start: int, end: int) -> 'LongestStreak':
        return cls(start=start, end=end, duration_seconds=(end - start) / 1000.0)


@dataclass
class Stats:
    """Running statistics for one probed target.

    One instance per target, owned by the probing loop and mutated only by the
    resolver and the prober.
    """
    hostname: str
    port: int
    resolved_address: str
    is_literal_ip: bool = False
    start_time: int = 0
    end_time: Optional[int] = None

    # Hostname re-resolution
    retry_after_failures: int = 0  # <= 0 disables retries
    consecutive_failures_since_resolve: int = 0
    total_retries: int = 0

    # Streak tracking
    current_streak_is_down: bool = False
    current_up_streak_start: Optional[int] = None
    current_down_streak_start: Optional[int] = None
    longest_up_streak: LongestStreak = field(default_factory=LongestStreak)
    longest_down_streak: LongestStreak = field(default_factory=LongestStreak)

    # Counters
    failure_count: int = 0
    cumulative_up_seconds: int = 0  # one tick per successful probe
    cumulative_down_seconds: int = 0  # one tick per failed probe
    last_success_timestamp: Optional[int] = None
    last_failure_timestamp: Optional[int] = None

    rtt_samples: List[float] = field(default_factory=list)  # ms, one per successful probe

    @property
    def success_count(self) -> int:
        return len(self.rtt_samples)

    @property
    def total_probes(self) -> int:
        return self.success_count + self.failure_count

    @property
    def state(self) -> State:
        if self.total_probes == 0:
            return State.UNINITIALIZED
        return State.DOWN if self.current_streak_is_down else State.UP

    @property
    def retry_enabled(self) -> bool:
        return self.retry_after_failures > 0 and not self.is_literal_ip


@dataclass(frozen=True)
class RttSummary:
    """Min/avg/max of the RTT samples. Only meaningful when ``has_data``."""
    min: float = 0.0
    max: float = 0.0
    average: float = 0.0
    has_data: bool = False


@dataclass(frozen=True)
class Success:
    """A probe whose TCP handshake completed."""
    rtt_ms: float
    timestamp: Optional[int] = None
    transition: Transition = Transition.NONE
    downtime_ms: Optional[int] = None  # set on a down -> up transition


@dataclass(frozen=True)
class Failure:
    """A probe whose TCP handshake did not complete."""
    error: Optional[str] = None
    timestamp: Optional[int] = None
    transition: Transition = Transition.NONE


ProbeOutcome = Union[Success, Failure]


@dataclass(frozen=True)
class RetryAttempt:
    """Result of one hostname re-resolution triggered by consecutive failures."""
    hostname: str
    previous_address: str
    address: str
    error: Optional[ResolutionError] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class FinalReport:
    """Immutable point-in-time snapshot of a run's statistics."""
    hostname: str
    resolved_address: str
    port: int
    is_literal_ip: bool
    start_time: int
    end_time: int
    success_count: int
    failure_count: int
    packet_loss: float  # percent, 0.0 when has_data is False
    has_data: bool
    last_success_timestamp: Optional[int]
    last_failure_timestamp: Optional[int]
    cumulative_up_seconds: int
    cumulative_down_seconds: int
    longest_up_streak: LongestStreak
    longest_down_streak: LongestStreak
    rtt: RttSummary
    retry_enabled: bool
    total_retries: int

    @property
    def total_probes(self) -> int:
        return self.success_count + self.failure_count

    @property
    def duration_seconds(self) -> float:
        return (self.end_time - self.start_time) / 1000.0
