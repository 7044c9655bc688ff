"""Per-connection execution context.

Handler and filter bodies receive the Connection as their only
argument. It exposes the current request, the session, application
settings and a closed set of response helpers:

    def hello(conn):
        conn.say("Hi!")                  # "Hi!\\n"
        conn.respond("ok")               # "OK\\n"
        conn.respond("user", "bob")      # "USER bob\\n"
        conn.send("raw bytes, no newline")
        return "returned text is the answer"
"""

from __future__ import annotations

import functools
import logging
from enum import Enum
from types import SimpleNamespace
from typing import TYPE_CHECKING, Any

from .request import Request

if TYPE_CHECKING:
    from .application import Application
    from .settings import Settings
    from .transport import Peer, Transport

logger = logging.getLogger(__name__)

ENCODING = "utf-8"
NEWLINE = "\n"


class ConnectionState(str, Enum):
    """Dispatch states of a connection."""

    IDLE = "idle"
    DISPATCHING = "dispatching"
    CLOSED = "closed"


class Connection:
    """Context of one connected client."""

    def __init__(self, app: Application, transport: Transport, peer: Peer):
        self.app = app
        self.peer = peer
        self.state = ConnectionState.IDLE
        self._transport = transport
        self._session: dict[str, Any] = {}
        self._request: Request | None = None
        self._helpers: SimpleNamespace | None = None

    # -------------------------------------------------------------------------
    # Request shortcuts
    # -------------------------------------------------------------------------

    @property
    def request(self) -> Request:
        """The request being processed, or an empty one when idle."""
        if self._request is None:
            self._request = Request.empty(self._session)
        return self._request

    @request.setter
    def request(self, value: Request | None) -> None:
        self._request = value

    @property
    def session(self) -> dict[str, Any]:
        """Values stashed across commands on this connection."""
        return self._session

    @property
    def query(self) -> str | None:
        return self.request.query

    @property
    def command(self) -> str | None:
        return self.request.query

    @property
    def params(self) -> dict[Any, str | None]:
        return self.request.params

    # -------------------------------------------------------------------------
    # Application shortcuts
    # -------------------------------------------------------------------------

    @property
    def settings(self) -> Settings:
        return self.app.settings

    config = settings

    @property
    def logger(self) -> logging.Logger:
        return self.app.logger

    @property
    def environment(self) -> str:
        return self.app.settings.environment

    @property
    def development(self) -> bool:
        return self.app.settings.development

    @property
    def test(self) -> bool:
        return self.app.settings.test

    @property
    def production(self) -> bool:
        return self.app.settings.production

    @property
    def helpers(self) -> SimpleNamespace:
        """Application helpers bound to this connection."""
        if self._helpers is None:
            self._helpers = SimpleNamespace(
                **{name: functools.partial(fn, self) for name, fn in self.app.helpers.items()}
            )
        return self._helpers

    @property
    def peer_name(self) -> str:
        return self.peer.name

    @property
    def closed(self) -> bool:
        return self.state is ConnectionState.CLOSED

    # -------------------------------------------------------------------------
    # Responses
    # -------------------------------------------------------------------------

    def send(self, data: str | bytes) -> None:
        """Send raw data to the client, without adding a newline."""
        if isinstance(data, str):
            logger.debug(f"Sending data to {self.peer_name}: {data.strip()}")
            data = data.encode(ENCODING)
        else:
            logger.debug(f"Sending {len(data)} bytes to {self.peer_name}")
        self._transport.write(self.peer, data)

    def say(self, data: Any) -> None:
        """Send a line: the data followed by a newline. None sends nothing.

        Bytes are written unchanged; anything else is sent as its text.
        """
        if data is None:
            return
        if isinstance(data, bytes):
            self.send(data + NEWLINE.encode(ENCODING))
        else:
            self.send(f"{data}{NEWLINE}")

    answer = say

    def respond(self, tag: str, *args: Any) -> None:
        """Send an uppercase tag followed by space-joined arguments.

        ``respond("ok")`` sends ``"OK\\n"``; ``respond("foo_bar", "x", "y")``
        sends ``"FOO_BAR x y\\n"``.
        """
        words = [tag.upper()]
        for arg in args:
            if isinstance(arg, list | tuple):
                words.extend(str(a) for a in arg)
            else:
                words.append(str(arg))
        self.say(" ".join(words))

    def close(self) -> None:
        """Close the connection with the client."""
        if self.state is ConnectionState.CLOSED:
            return
        self.state = ConnectionState.CLOSED
        self._transport.disconnect(self.peer)

    def __repr__(self) -> str:
        return f"Connection({self.peer_name}, state={self.state.value})"
