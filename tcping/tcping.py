#!/usr/bin/env python3
"""
Probe a TCP port repeatedly, print a reply line per probe and availability
statistics at the end, and optionally export them to Prometheus.
"""

import sys
import time
import argparse
from typing import Callable, List, Optional

from .clock import Clock, SystemClock
from .errors import ResolutionError
from .exporter import PrometheusMetricsExporter
from .finalizer import finalize
from .models import FinalReport, Stats
from .prober import DEFAULT_CONNECT_TIMEOUT, Prober
from .report import format_recovery, format_reply, format_retry, print_report
from .resolver import DEFAULT_RESOLVE_TIMEOUT, Resolver
from .utils import prepare_headers, send_metrics_remote_write, sleep_time

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


def _port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid port '{value}'") from None
    if not 1 <= port <= 65535:
        raise argparse.ArgumentTypeError(f"port must be between 1 and 65535, got {port}")
    return port


def _positive_float(value: str) -> float:
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid number '{value}'") from None
    if number <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return number


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid integer '{value}'") from None
    if number < 0:
        raise argparse.ArgumentTypeError(f"must not be negative, got {value}")
    return number


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='tcping',
        description='Probe a TCP port repeatedly and report availability statistics'
    )
    parser.add_argument(
        'host',
        help='Hostname or IP address to probe'
    )
    parser.add_argument(
        'port',
        type=_port,
        help='TCP port to probe'
    )
    parser.add_argument(
        '-c', '--count',
        type=_non_negative_int,
        default=0,
        help='Number of probes to send (default: 0, probe until interrupted)'
    )
    parser.add_argument(
        '-i', '--interval',
        type=_positive_float,
        default=1.0,
        help='Seconds between probes (default: 1.0)'
    )
    parser.add_argument(
        '-t', '--timeout',
        type=_positive_float,
        help=f'Connect timeout in seconds (default: the interval, at most {DEFAULT_CONNECT_TIMEOUT})'
    )
    parser.add_argument(
        '-r', '--retry-resolve',
        type=_non_negative_int,
        default=0,
        help='Re-resolve the hostname after this many consecutive failures (default: 0, never)'
    )
    parser.add_argument(
        '--resolve-timeout',
        type=_positive_float,
        default=DEFAULT_RESOLVE_TIMEOUT,
        help=f'Seconds to wait for a hostname resolution (default: {DEFAULT_RESOLVE_TIMEOUT})'
    )
    parser.add_argument(
        '--textfile',
        help='Write the final statistics in Prometheus text format to this file'
    )
    parser.add_argument(
        '--remote-write-url',
        help='Prometheus remote write endpoint URL to push the final statistics to'
    )
    parser.add_argument(
        '--remote-write-header',
        action='append',
        help='Additional header for remote write (format: Key=Value)'
    )
    parser.add_argument(
        '--instance-label',
        default='tcping',
        help='Value for the instance label added to all remote write metrics (default: tcping)'
    )
    parser.add_argument(
        '--dry-run',
        action='store_true',
        help='Build the remote write payload without sending it'
    )
    parser.add_argument(
        '--debug-file',
        help='Save the uncompressed remote write payload as JSON to this file'
    )
    parser.add_argument(
        '--verbose',
        action='store_true',
        help='Print each metric sample sent via remote write'
    )
    return parser


def probe_loop(stats: Stats, resolver: Resolver, prober: Prober, count: int, interval: float,
               sleep: Callable[[float], None] = time.sleep) -> None:
    """Probe ``count`` times (forever when ``count`` is 0), pacing by ``interval`` seconds.

    Interrupting the loop with Ctrl+C propagates ``KeyboardInterrupt``.
    """
    clock = prober.clock
    iteration = 0
    while count == 0 or iteration < count:
        iteration += 1
        started = clock.now_ms()

        attempt = resolver.retry_if_needed(stats)
        if attempt is not None:
            print(format_retry(attempt))
            if not attempt.succeeded:
                print(f"Warning: could not re-resolve {attempt.hostname}: {attempt.error.reason}; "
                      f"keeping {attempt.previous_address}", file=sys.stderr)

        outcome = prober.probe_once(stats)
        recovery = format_recovery(outcome)
        if recovery:
            print(recovery)
        print(format_reply(stats, outcome), flush=True)

        if count and iteration >= count:
            break
        elapsed = (clock.now_ms() - started) / 1000.0
        sleep(sleep_time(interval, elapsed))


def export_report(args: argparse.Namespace, report: FinalReport, clock: Clock) -> bool:
    """Export the final report to the sinks requested on the command line."""
    ok = True
    if args.textfile:
        exporter = PrometheusMetricsExporter()
        exporter.export_report(report)
        try:
            exporter.write_textfile(args.textfile)
        except OSError as e:
            print(f"Error: could not write {args.textfile}: {e}", file=sys.stderr)
            ok = False

    if args.remote_write_url:
        headers = prepare_headers(args.remote_write_header)
        wall_end_time_ms = int(clock.to_datetime(report.end_time).timestamp() * 1000)
        ok = send_metrics_remote_write(
            args.remote_write_url, headers, report, wall_end_time_ms, args.instance_label,
            args.verbose, args.dry_run, args.debug_file
        ) and ok
    return ok


def main(argv: Optional[List[str]] = None, resolver: Optional[Resolver] = None,
         prober: Optional[Prober] = None, clock: Optional[Clock] = None,
         sleep: Callable[[float], None] = time.sleep) -> int:
    args = build_arg_parser().parse_args(argv)

    clock = clock or (prober.clock if prober else SystemClock())
    resolver = resolver or Resolver(timeout=args.resolve_timeout)
    timeout = args.timeout or min(args.interval, DEFAULT_CONNECT_TIMEOUT)
    prober = prober or Prober(clock=clock, timeout=timeout)

    try:
        stats = resolver.create_stats(args.host, args.port, clock.now_ms(), args.retry_resolve)
    except ResolutionError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_ERROR
    except KeyboardInterrupt:
        # Nothing was probed yet, so there are no statistics to print
        return EXIT_INTERRUPTED

    if stats.is_literal_ip:
        print(f"TCPinging {stats.resolved_address} on port {stats.port}")
    else:
        print(f"TCPinging {stats.hostname} ({stats.resolved_address}) on port {stats.port}")

    status = EXIT_OK
    try:
        probe_loop(stats, resolver, prober, args.count, args.interval, sleep)
    except KeyboardInterrupt:
        status = EXIT_INTERRUPTED

    report = finalize(stats, clock)
    print_report(report, clock)

    if not export_report(args, report, clock) and status == EXIT_OK:
        status = EXIT_ERROR
    return status


if __name__ == '__main__':
    sys.exit(main())
