"""Hostname resolution and the re-resolve-after-failures policy."""

import ipaddress
import socket
import threading
from typing import Callable, Optional

from .errors import ResolutionError
from .models import RetryAttempt, Stats

DEFAULT_RESOLVE_TIMEOUT = 5.0


def is_literal_ip(hostname: str) -> bool:
    """Return True if ``hostname`` is an IPv4 or IPv6 address literal."""
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True


def getaddrinfo_lookup(hostname: str) -> str:
    """Resolve ``hostname`` to the first TCP-capable address the system returns."""
    infos = socket.getaddrinfo(hostname, None, type=socket.SOCK_STREAM)
    if not infos:
        raise socket.gaierror(f"no addresses for {hostname}")
    return infos[0][4][0]


class Resolver:
    """Resolves the probe target and re-resolves it after repeated failures."""

    def __init__(self, lookup: Optional[Callable[[str], str]] = None,
                 timeout: float = DEFAULT_RESOLVE_TIMEOUT):
        """Initialize the resolver.

        Args:
            lookup: Function mapping a hostname to an address string. Any
                ``OSError`` or ``UnicodeError`` it raises is reported as a
                ``ResolutionError``. Defaults to ``getaddrinfo_lookup``.
            timeout: Upper bound in seconds for a single resolution.
        """
        self.lookup = lookup or getaddrinfo_lookup
        self.timeout = timeout

    def resolve(self, hostname: str) -> str:
        """Resolve ``hostname`` once, without retrying.

        Raises:
            ResolutionError: if the name cannot be resolved within the timeout.
        """
        if is_literal_ip(hostname):
            return hostname

        # getaddrinfo has no timeout of its own, so bound it from the outside.
        # A hung lookup runs on a daemon thread and never holds up exit.
        result = {}

        def _lookup():
            try:
                result['address'] = self.lookup(hostname)
            except Exception as e:
                result['error'] = e

        worker = threading.Thread(target=_lookup, name=f'resolve-{hostname}', daemon=True)
        worker.start()
        worker.join(self.timeout)

        if worker.is_alive():
            raise ResolutionError(hostname, f"timed out after {self.timeout}s")
        error = result.get('error')
        if isinstance(error, (OSError, UnicodeError)):
            raise ResolutionError(hostname, str(error)) from error
        if error is not None:
            raise error
        return result['address']

    def create_stats(self, hostname: str, port: int, start_time: int,
                     retry_after_failures: int = 0) -> Stats:
        """Resolve the target and build the statistics aggregate for a run.

        Raises:
            ResolutionError: if the initial resolution fails. This is fatal
                for the run.
        """
        address = self.resolve(hostname)
        return Stats(
            hostname=hostname,
            port=port,
            resolved_address=address,
            is_literal_ip=is_literal_ip(hostname),
            start_time=start_time,
            retry_after_failures=retry_after_failures,
        )

    def retry_if_needed(self, stats: Stats) -> Optional[RetryAttempt]:
        """Re-resolve the hostname once too many consecutive probes failed.

        Returns None when no retry was due. Otherwise returns the attempt; a
        failed attempt carries the ``ResolutionError`` and leaves the previous
        address and the failure counter untouched, so the next probe retries.
        """
        if not stats.retry_enabled:
            return None
        if stats.consecutive_failures_since_resolve <= stats.retry_after_failures:
            return None

        previous = stats.resolved_address
        try:
            address = self.resolve(stats.hostname)
        except ResolutionError as e:
            return RetryAttempt(stats.hostname, previous, previous, error=e)

        stats.resolved_address = address
        stats.consecutive_failures_since_resolve = 0
        stats.total_retries += 1
        return RetryAttempt(stats.hostname, previous, address)
