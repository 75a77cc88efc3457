"""Utility functions for formatting and pacing TCP probes."""

from typing import Dict, List, Optional
import sys

from .models import FinalReport

# Packet loss above this percentage is flagged as severe
SEVERE_LOSS_THRESHOLD = 30.0


def format_duration(seconds: int) -> str:
    """Format a number of seconds the way the statistics report prints it.

    Units are only shown down from the largest non-zero one, e.g.
    "2 hours 0 minutes 5 seconds", "1 hour", "1 minute 3 seconds", "1 second".
    """
    seconds = int(seconds)
    hours, remainder = divmod(seconds, 60 * 60)
    minutes, secs = divmod(remainder, 60)

    if hours >= 2:
        return f"{hours} hours {minutes} minutes {secs} seconds"
    if hours == 1 and minutes == 0 and secs == 0:
        return "1 hour"
    if hours == 1:
        return f"1 hour {minutes} minutes {secs} seconds"

    if minutes >= 2:
        return f"{minutes} minutes {secs} seconds"
    if minutes == 1 and secs == 0:
        return "1 minute"
    if minutes == 1:
        return f"1 minute {secs} seconds"

    if secs >= 2:
        return f"{secs} seconds"
    return f"{secs} second"


def format_clock_duration(seconds: float) -> str:
    """Format a duration as HH:MM:SS (hours may exceed 24)."""
    total = max(0, int(seconds))
    hours, remainder = divmod(total, 60 * 60)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def loss_marker(packet_loss: float) -> str:
    """Severity marker appended to the packet loss percentage."""
    if packet_loss == 0:
        return ''
    if packet_loss <= SEVERE_LOSS_THRESHOLD:
        return '!!'
    return '!!!'


def sleep_time(interval: float, elapsed: float) -> float:
    """Seconds left in the probing interval, never negative."""
    return max(0.0, interval - elapsed)


def prepare_headers(remote_write_headers: Optional[List[str]]) -> Dict[str, str]:
    """Prepare headers dictionary from command-line arguments."""
    headers = {}
    if remote_write_headers:
        for header in remote_write_headers:
            if '=' in header:
                key, value = header.split('=', 1)
                headers[key] = value
    return headers


def send_metrics_remote_write(remote_write_url: str, headers: Dict[str, str],
                              report: FinalReport, wall_end_time_ms: int, instance_label: str,
                              verbose: bool = False, dry_run: bool = False,
                              debug_file: Optional[str] = None) -> bool:
    """Send the final report via a remote write endpoint.

    Args:
        remote_write_url: URL of the Prometheus remote write endpoint
        headers: HTTP headers to include in the request
        report: Final statistics of the run
        wall_end_time_ms: Wall clock time (Unix ms) used as the sample timestamp
        instance_label: Value for the instance label added to all metrics
        verbose: Print each metric sample as it is added
        dry_run: If True, build the payload but skip sending it
        debug_file: Optional path to save the uncompressed payload as JSON

    Returns:
        True if the metrics were sent (or processed in dry-run mode)
    """
    # Imported here so the protobuf stack is only needed when pushing metrics
    from .remote_write import RemoteWriteClient

    if dry_run:
        print(f"\nDry-run mode: Processing metrics (not sending to {remote_write_url})...", file=sys.stderr)
    else:
        print(f"\nSending metrics to {remote_write_url}...", file=sys.stderr)

    client = RemoteWriteClient(remote_write_url, headers, instance_label, verbose)

    if client.send_report(report, wall_end_time_ms, dry_run=dry_run, debug_file=debug_file):
        if dry_run:
            print("Dry-run completed: Processed metrics for 1 report", file=sys.stderr)
        else:
            print("Successfully sent metrics for 1 report", file=sys.stderr)
        return True

    print("Failed to process/send metrics", file=sys.stderr)
    return False
