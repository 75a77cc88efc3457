"""Final statistics for a probing run."""

from typing import Sequence, Tuple

from .clock import Clock
from .errors import InvariantViolation
from .models import FinalReport, RttSummary, Stats
from .prober import close_streak


def compute_rtt_summary(samples: Sequence[float]) -> RttSummary:
    """Return min/avg/max of ``samples``; ``has_data`` is False when empty."""
    if not samples:
        return RttSummary()
    return RttSummary(
        min=min(samples),
        max=max(samples),
        average=sum(samples) / len(samples),
        has_data=True,
    )


def compute_packet_loss(success_count: int, failure_count: int) -> Tuple[float, bool]:
    """Return ``(loss_percent, has_data)``. No probes means no data, not 0/0."""
    total = success_count + failure_count
    if total == 0:
        return 0.0, False
    return failure_count / total * 100.0, True


def _check_invariants(stats: Stats) -> None:
    if stats.failure_count < 0:
        raise InvariantViolation(f"negative failure counter: {stats.failure_count}")
    if stats.total_probes > 0:
        open_starts = [s for s in (stats.current_up_streak_start, stats.current_down_streak_start)
                       if s is not None]
        if len(open_starts) != 1:
            raise InvariantViolation(f"expected exactly one open streak, found {len(open_starts)}")


def finalize(stats: Stats, clock: Clock) -> FinalReport:
    """Stamp the end of the run and build the report.

    The end time is only stamped once, so calling this again yields the same
    report. The currently open streak is closed at the end time for the report
    only; the live streak fields in ``stats`` are not modified.

    Raises:
        InvariantViolation: if the counters in ``stats`` are inconsistent.
    """
    _check_invariants(stats)

    if stats.end_time is None:
        stats.end_time = clock.now_ms()
    end_time = stats.end_time

    longest_up = stats.longest_up_streak
    longest_down = stats.longest_down_streak
    if stats.total_probes > 0:
        if stats.current_streak_is_down:
            longest_down = close_streak(longest_down, stats.current_down_streak_start, end_time)
        else:
            longest_up = close_streak(longest_up, stats.current_up_streak_start, end_time)

    packet_loss, has_data = compute_packet_loss(stats.success_count, stats.failure_count)

    return FinalReport(
        hostname=stats.hostname,
        resolved_address=stats.resolved_address,
        port=stats.port,
        is_literal_ip=stats.is_literal_ip,
        start_time=stats.start_time,
        end_time=end_time,
        success_count=stats.success_count,
        failure_count=stats.failure_count,
        packet_loss=packet_loss,
        has_data=has_data,
        last_success_timestamp=stats.last_success_timestamp,
        last_failure_timestamp=stats.last_failure_timestamp,
        cumulative_up_seconds=stats.cumulative_up_seconds,
        cumulative_down_seconds=stats.cumulative_down_seconds,
        longest_up_streak=longest_up,
        longest_down_streak=longest_down,
        rtt=compute_rtt_summary(stats.rtt_samples),
        retry_enabled=stats.retry_enabled,
        total_retries=stats.total_retries,
    )
