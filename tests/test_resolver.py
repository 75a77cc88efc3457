from __future__ import annotations

import socket
import subprocess
import sys
import textwrap
import threading
import time
from pathlib import Path

import pytest

from conftest import START_MS
from tcping.errors import ResolutionError
from tcping.models import Failure
from tcping.prober import apply_outcome
from tcping.resolver import Resolver, is_literal_ip

REPO_ROOT = Path(__file__).resolve().parents[1]


class FakeLookup:
    def __init__(self, *answers) -> None:
        self.answers = list(answers)
        self.calls = []

    def __call__(self, hostname: str) -> str:
        self.calls.append(hostname)
        answer = self.answers.pop(0)
        if isinstance(answer, Exception):
            raise answer
        return answer


def _fail(stats, times: int, now: int = START_MS) -> None:
    for i in range(times):
        apply_outcome(stats, Failure(), now + i * 1000)


def test_is_literal_ip() -> None:
    assert is_literal_ip("192.0.2.1")
    assert is_literal_ip("2001:db8::1")
    assert not is_literal_ip("example.com")


def test_resolve_literal_ip_skips_lookup() -> None:
    lookup = FakeLookup()
    assert Resolver(lookup=lookup).resolve("192.0.2.1") == "192.0.2.1"
    assert lookup.calls == []


def test_resolve_wraps_lookup_errors() -> None:
    resolver = Resolver(lookup=FakeLookup(socket.gaierror("Name or service not known")))

    with pytest.raises(ResolutionError) as excinfo:
        resolver.resolve("missing.example")

    assert excinfo.value.hostname == "missing.example"
    assert "Name or service not known" in str(excinfo.value)


def test_resolve_is_bounded_by_timeout() -> None:
    release = threading.Event()

    def _hang(hostname: str) -> str:
        release.wait(5)
        return "192.0.2.1"

    try:
        with pytest.raises(ResolutionError, match="timed out"):
            Resolver(lookup=_hang, timeout=0.05).resolve("slow.example")
    finally:
        release.set()


def test_create_stats_marks_literal_ip() -> None:
    stats = Resolver(lookup=FakeLookup()).create_stats("192.0.2.1", 80, START_MS, retry_after_failures=3)

    assert stats.is_literal_ip
    assert stats.resolved_address == "192.0.2.1"
    assert stats.start_time == START_MS
    assert not stats.retry_enabled


def test_retry_triggers_once_after_threshold_is_exceeded() -> None:
    resolver = Resolver(lookup=FakeLookup("192.0.2.1", "192.0.2.2"))
    stats = resolver.create_stats("example.test", 443, START_MS, retry_after_failures=2)

    attempts = []
    for i in range(4):
        attempts.append(resolver.retry_if_needed(stats))
        apply_outcome(stats, Failure(), START_MS + i * 1000)
    attempts.append(resolver.retry_if_needed(stats))

    # Failures 1 and 2 do not exceed the threshold, the 3rd does
    assert attempts[:3] == [None, None, None]
    assert attempts[3] is not None and attempts[3].succeeded
    assert attempts[3].previous_address == "192.0.2.1"
    assert attempts[3].address == "192.0.2.2"
    # Reset: the 4th consecutive failure only counts as the first since resolve
    assert attempts[4] is None
    assert stats.consecutive_failures_since_resolve == 1
    assert stats.total_retries == 1
    assert stats.resolved_address == "192.0.2.2"


def test_retry_failure_keeps_previous_address() -> None:
    resolver = Resolver(lookup=FakeLookup("192.0.2.1", socket.gaierror("temporary failure")))
    stats = resolver.create_stats("example.test", 443, START_MS, retry_after_failures=1)
    _fail(stats, 2)

    attempt = resolver.retry_if_needed(stats)

    assert attempt is not None
    assert not attempt.succeeded
    assert isinstance(attempt.error, ResolutionError)
    assert stats.resolved_address == "192.0.2.1"
    assert stats.consecutive_failures_since_resolve == 2
    assert stats.total_retries == 0


def test_retry_disabled_when_threshold_is_zero() -> None:
    lookup = FakeLookup("192.0.2.1")
    resolver = Resolver(lookup=lookup)
    stats = resolver.create_stats("example.test", 443, START_MS, retry_after_failures=0)
    _fail(stats, 10)

    assert resolver.retry_if_needed(stats) is None
    assert lookup.calls == ["example.test"]


def test_resolve_propagates_unexpected_lookup_errors() -> None:
    def _broken(hostname: str) -> str:
        raise ValueError("bad lookup table")

    with pytest.raises(ValueError, match="bad lookup table"):
        Resolver(lookup=_broken).resolve("example.test")


def test_timed_out_lookup_does_not_delay_process_exit() -> None:
    script = textwrap.dedent(
        """
        import time
        from tcping.resolver import Resolver
        from tcping.errors import ResolutionError

        def _hang(hostname):
            time.sleep(30)
            return "192.0.2.1"

        try:
            Resolver(lookup=_hang, timeout=0.1).resolve("slow.example")
        except ResolutionError as e:
            print(e)
        """
    )

    started = time.monotonic()
    completed = subprocess.run(
        [sys.executable, "-c", script],
        cwd=REPO_ROOT,
        capture_output=True,
        text=True,
        timeout=20,
    )
    elapsed = time.monotonic() - started

    assert completed.returncode == 0, completed.stderr
    assert "timed out after 0.1s" in completed.stdout
    assert elapsed < 10
