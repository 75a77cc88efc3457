"""TCP reachability probing with availability statistics."""

from .clock import SystemClock
from .errors import ConnectFailure, InvariantViolation, ResolutionError, TcpingError
from .finalizer import compute_rtt_summary, finalize
from .models import (
    Failure,
    FinalReport,
    LongestStreak,
    ProbeOutcome,
    RetryAttempt,
    RttSummary,
    State,
    Stats,
    Success,
    Transition,
)
from .prober import Prober, SocketConnector, apply_outcome
from .resolver import Resolver
from .exporter import PrometheusMetricsExporter

__all__ = [
    'SystemClock',
    'ConnectFailure',
    'InvariantViolation',
    'ResolutionError',
    'TcpingError',
    'compute_rtt_summary',
    'finalize',
    'Failure',
    'FinalReport',
    'LongestStreak',
    'ProbeOutcome',
    'RetryAttempt',
    'RttSummary',
    'State',
    'Stats',
    'Success',
    'Transition',
    'Prober',
    'SocketConnector',
    'apply_outcome',
    'Resolver',
    'PrometheusMetricsExporter',
]
