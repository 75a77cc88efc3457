"""Exceptions raised while probing a TCP target."""


class TcpingError(Exception):
    """Base class for tcping errors."""


class ResolutionError(TcpingError):
    """Raised when a hostname cannot be resolved to an address."""

    def __init__(self, hostname: str, reason: str):
        super().__init__(f"cannot resolve {hostname}: {reason}")
        self.hostname = hostname
        self.reason = reason


class ConnectFailure(TcpingError):
    """Raised by a connector when the TCP handshake does not complete.

    Refused, timed out and unreachable connections all collapse into this one
    type; the underlying cause is only kept for display.
    """


class InvariantViolation(AssertionError):
    """Raised when the statistics are internally inconsistent (a bug)."""
