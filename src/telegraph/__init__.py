"""Telegraph - a small framework for line-oriented TCP command servers.

Requests are handled by functions bound to patterns, with optional
filters run before and after them:

    import re
    from telegraph import Application

    app = Application("hello")

    @app.handle(re.compile(r"^HELLO"))
    def hello(conn):
        return "HI DUDE!"

    if __name__ == "__main__":
        app.main()
"""

from .application import Application
from .connection import Connection, ConnectionState
from .dispatcher import Dispatcher, DispatchResult, DispatchStatus
from .errors import AddressInUse, DispatchError, InvalidPattern, TelegraphError
from .filters import GLOBAL, FilterKind, FilterRegistry
from .handler import Handler, HandlerRegistry, PatternScope
from .request import Request
from .settings import ServerConfig, Settings
from .transport import Peer, TcpTransport, Transport

__version__ = "0.1.0"

__all__ = [
    # Application
    "Application",
    "Settings",
    "ServerConfig",
    # Routing
    "Handler",
    "HandlerRegistry",
    "PatternScope",
    "Request",
    "FilterKind",
    "FilterRegistry",
    "GLOBAL",
    # Dispatch
    "Connection",
    "ConnectionState",
    "Dispatcher",
    "DispatchResult",
    "DispatchStatus",
    # Transport
    "Peer",
    "Transport",
    "TcpTransport",
    # Errors
    "TelegraphError",
    "InvalidPattern",
    "AddressInUse",
    "DispatchError",
]
