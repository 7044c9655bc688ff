"""Exception types raised by Telegraph.

Registration errors (InvalidPattern) are fatal and stop startup.
AddressInUse is raised by the transport when it cannot bind.
DispatchError wraps anything raised while serving a single message;
it never leaves the dispatcher.
"""

from __future__ import annotations

import errno


class TelegraphError(Exception):
    """Base class for all Telegraph errors."""


class InvalidPattern(TelegraphError, ValueError):
    """Raised when no usable pattern can be derived for a handler."""


class AddressInUse(TelegraphError, OSError):
    """Raised when the listener cannot bind to the requested address."""

    def __init__(self, host: str, port: int):
        super().__init__(errno.EADDRINUSE, f"Address already in use: {host}:{port}")
        self.host = host
        self.port = port


class DispatchError(TelegraphError):
    """Error raised while dispatching one inbound command.

    The original exception is kept as ``__cause__``; the message is the
    original's text so it can be reported to the peer unchanged.
    """

    @classmethod
    def wrap(cls, exc: BaseException) -> DispatchError:
        """Wrap an arbitrary exception raised during dispatch."""
        if isinstance(exc, DispatchError):
            return exc
        error = cls(str(exc))
        error.__cause__ = exc
        return error
