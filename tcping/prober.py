"""TCP probing and the up/down statistics state machine."""

import socket
import time
from dataclasses import replace
from typing import Optional, Protocol

from .clock import Clock, SystemClock
from .errors import ConnectFailure
from .models import Failure, LongestStreak, ProbeOutcome, Stats, Success, Transition

DEFAULT_CONNECT_TIMEOUT = 1.0


class Connector(Protocol):
    """Capability that performs a single TCP handshake."""

    def attempt_connect(self, address: str, port: int, timeout: float) -> float:
        """Connect and return the round-trip time in milliseconds.

        Raises:
            ConnectFailure: if the connection could not be established.
        """
        ...


class SocketConnector:
    """Connector that opens a real TCP connection and closes it immediately."""

    def attempt_connect(self, address: str, port: int, timeout: float) -> float:
        started = time.perf_counter()
        try:
            # No payload is exchanged; the handshake alone is the probe.
            with socket.create_connection((address, port), timeout=timeout):
                return (time.perf_counter() - started) * 1000.0
        except OSError as e:
            raise ConnectFailure(str(e) or e.__class__.__name__) from e


def close_streak(longest: LongestStreak, start: Optional[int], end: int) -> LongestStreak:
    """Compare a just-ended streak against the longest one seen so far.

    Returns the streak that should be kept. Ties go to the newer streak.
    """
    # A streak opened after the boundary (probing resumed after a report) has nothing to close
    if start is None or end < start:
        return longest
    candidate = LongestStreak.between(start, end)
    if longest.end is None:
        return candidate
    if candidate.duration_seconds >= longest.duration_seconds:
        return candidate
    return longest


def apply_outcome(stats: Stats, outcome: ProbeOutcome, now: int) -> ProbeOutcome:
    """Apply one probe result to ``stats``.

    This is the only place that moves the state machine. Returns the outcome
    stamped with its timestamp and the transition it caused.
    """
    if isinstance(outcome, Success):
        return _apply_success(stats, outcome, now)
    return _apply_failure(stats, outcome, now)


def _apply_success(stats: Stats, outcome: Success, now: int) -> Success:
    transition = Transition.NONE
    downtime_ms = None

    if stats.current_streak_is_down:
        # down -> up
        downtime_ms = now - stats.current_down_streak_start
        stats.longest_down_streak = close_streak(
            stats.longest_down_streak, stats.current_down_streak_start, now)
        stats.current_down_streak_start = None
        stats.current_up_streak_start = now
        stats.current_streak_is_down = False
        stats.consecutive_failures_since_resolve = 0
        transition = Transition.DOWN_TO_UP
    elif stats.current_up_streak_start is None:
        # First probe of the run
        stats.current_up_streak_start = now
        transition = Transition.FIRST

    # Appending the sample is what counts the success
    stats.rtt_samples.append(outcome.rtt_ms)
    stats.cumulative_up_seconds += 1
    stats.last_success_timestamp = now

    return replace(outcome, timestamp=now, transition=transition, downtime_ms=downtime_ms)


def _apply_failure(stats: Stats, outcome: Failure, now: int) -> Failure:
    transition = Transition.NONE

    if not stats.current_streak_is_down:
        if stats.current_up_streak_start is None:
            transition = Transition.FIRST
        else:
            # up -> down
            stats.longest_up_streak = close_streak(
                stats.longest_up_streak, stats.current_up_streak_start, now)
            transition = Transition.UP_TO_DOWN
        stats.current_up_streak_start = None
        stats.current_down_streak_start = now
        stats.current_streak_is_down = True

    stats.failure_count += 1
    stats.cumulative_down_seconds += 1
    stats.last_failure_timestamp = now
    stats.consecutive_failures_since_resolve += 1

    return replace(outcome, timestamp=now, transition=transition)


class Prober:
    """Executes one TCP probe per call and feeds the result into ``Stats``.

    The prober never sleeps; pacing between probes is up to the caller.
    """

    def __init__(self, connector: Optional[Connector] = None, clock: Optional[Clock] = None,
                 timeout: float = DEFAULT_CONNECT_TIMEOUT):
        self.connector = connector or SocketConnector()
        self.clock = clock or SystemClock()
        self.timeout = timeout

    def probe_once(self, stats: Stats) -> ProbeOutcome:
        """Probe ``stats.resolved_address:stats.port`` once and update ``stats``."""
        try:
            rtt_ms = self.connector.attempt_connect(stats.resolved_address, stats.port, self.timeout)
        except ConnectFailure as e:
            outcome: ProbeOutcome = Failure(error=str(e))
        else:
            outcome = Success(rtt_ms=rtt_ms)
        return apply_outcome(stats, outcome, self.clock.now_ms())
