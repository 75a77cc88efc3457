"""Human readable rendering of probe replies and final statistics."""

from typing import List, Optional

from .clock import Clock
from .models import FinalReport, LongestStreak, ProbeOutcome, RetryAttempt, Stats, Success
from .utils import format_clock_duration, format_duration, loss_marker

TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'


def _target(stats: Stats) -> str:
    # A literal IP is shown once rather than as "IP (IP)"
    if stats.is_literal_ip:
        return stats.resolved_address
    return f"{stats.hostname} ({stats.resolved_address})"


def format_reply(stats: Stats, outcome: ProbeOutcome) -> str:
    """Format the one-line reply for a probe that was just applied to ``stats``."""
    target = _target(stats)
    if isinstance(outcome, Success):
        return (f"Reply from {target} on port {stats.port} "
                f"TCP_conn={stats.success_count} time={outcome.rtt_ms:.2f} ms")
    return f"No reply from {target} on port {stats.port} TCP_conn={stats.failure_count}"


def format_recovery(outcome: ProbeOutcome) -> Optional[str]:
    """Line announcing how long the target was down, printed when it comes back."""
    if not isinstance(outcome, Success) or outcome.downtime_ms is None:
        return None
    return f"No response received for {format_duration(outcome.downtime_ms // 1000)}"


def format_retry(attempt: RetryAttempt) -> str:
    return f"retrying to resolve {attempt.hostname}"


def _format_timestamp(clock: Clock, timestamp: int) -> str:
    return clock.to_datetime(timestamp).strftime(TIMESTAMP_FORMAT)


def _format_streak(label: str, streak: LongestStreak, clock: Clock) -> Optional[str]:
    if streak.end is None or streak.duration_seconds == 0:
        return None
    return (f"{label}{format_duration(int(streak.duration_seconds))}"
            f" from {_format_timestamp(clock, streak.start)}"
            f" to {_format_timestamp(clock, streak.end)}")


def render_report(report: FinalReport, clock: Clock) -> List[str]:
    """Render the end-of-run statistics as a list of lines."""
    lines: List[str] = ['', f"--- {report.hostname} TCPing statistics ---"]

    if report.has_data:
        marker = loss_marker(report.packet_loss)
        lines.append(f"{report.total_probes} probes transmitted, {report.success_count} received, "
                     f"{report.packet_loss:.2f}%{marker} packet loss")
    else:
        lines.append("0 probes transmitted, 0 received")

    lines.append(f"successful probes:   {report.success_count}")
    lines.append(f"unsuccessful probes: {report.failure_count}")

    if report.last_success_timestamp is None:
        lines.append("last successful probe:   Never succeeded")
    else:
        lines.append(f"last successful probe:   {_format_timestamp(clock, report.last_success_timestamp)}")
    if report.last_failure_timestamp is None:
        lines.append("last unsuccessful probe: Never failed")
    else:
        lines.append(f"last unsuccessful probe: {_format_timestamp(clock, report.last_failure_timestamp)}")

    lines.append(f"total uptime:   {format_duration(report.cumulative_up_seconds)}")
    lines.append(f"total downtime: {format_duration(report.cumulative_down_seconds)}")

    for label, streak in (("longest consecutive uptime:   ", report.longest_up_streak),
                          ("longest consecutive downtime: ", report.longest_down_streak)):
        line = _format_streak(label, streak, clock)
        if line:
            lines.append(line)

    if not report.is_literal_ip:
        lines.append(f"retried to resolve hostname {report.total_retries} times")

    if report.rtt.has_data:
        lines.append(f"rtt min/avg/max: {report.rtt.min:.2f}/{report.rtt.average:.2f}/{report.rtt.max:.2f} ms")

    lines.append("--------------------------------------")
    lines.append(f"TCPing started at: {_format_timestamp(clock, report.start_time)}")
    lines.append(f"TCPing ended at:   {_format_timestamp(clock, report.end_time)}")
    lines.append(f"duration (HH:MM:SS): {format_clock_duration(report.duration_seconds)}")
    lines.append('')
    return lines


def print_report(report: FinalReport, clock: Clock) -> None:
    print('\n'.join(render_report(report, clock)))
