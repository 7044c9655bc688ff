"""Connection dispatcher - turns inbound chunks into handler calls.

For every chunk delivered by the transport:
1. decode to text (each chunk is one command, nothing is buffered)
2. find the first handler whose pattern matches
3. build the Request and store it on the connection
4. run before filters
5. call the handler body; a result other than None, False or empty
   text is sent as a line (bytes are written unchanged)
6. run after filters

Unmatched commands are silently ignored. Errors in steps 3-6 are
captured as a failed DispatchResult, logged, and reported to the
client as a single ``ERROR <message>`` line. The connection stays open.
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from .connection import ENCODING, Connection, ConnectionState
from .errors import DispatchError
from .filters import FilterKind
from .request import Request

if TYPE_CHECKING:
    from .application import Application
    from .handler import Handler
    from .transport import Peer, Transport

logger = logging.getLogger(__name__)


class DispatchStatus(str, Enum):
    """Outcome of dispatching one command."""

    OK = "ok"
    UNMATCHED = "unmatched"
    ERROR = "error"


@dataclass
class DispatchResult:
    """Result of dispatching one command.

    Attributes:
        status: ok, unmatched or error
        response: Text returned by the handler body (ok only)
        handler: Matched handler, if any
        error: The wrapped exception (error only)
    """

    status: DispatchStatus
    response: Any = None
    handler: Handler | None = None
    error: DispatchError | None = None

    @property
    def ok(self) -> bool:
        return self.status is DispatchStatus.OK

    @property
    def description(self) -> str:
        return str(self.error) if self.error else ""

    @classmethod
    def success(cls, handler: Handler, response: Any) -> DispatchResult:
        return cls(DispatchStatus.OK, response=response, handler=handler)

    @classmethod
    def unmatched(cls) -> DispatchResult:
        return cls(DispatchStatus.UNMATCHED)

    @classmethod
    def failure(cls, error: BaseException, handler: Handler | None = None) -> DispatchResult:
        return cls(DispatchStatus.ERROR, handler=handler, error=DispatchError.wrap(error))


def _is_empty(response: Any) -> bool:
    """Results that produce no response line."""
    return response is None or response is False or (isinstance(response, str | bytes) and not response)


class Dispatcher:
    """Per-connection orchestrator between the transport and the application."""

    def __init__(self, app: Application, transport: Transport) -> None:
        self.app = app
        self.transport = transport
        self._connections: dict[Peer, Connection] = {}

    @property
    def connections(self) -> list[Connection]:
        return list(self._connections.values())

    def connection(self, peer: Peer) -> Connection | None:
        return self._connections.get(peer)

    # -------------------------------------------------------------------------
    # Transport callbacks
    # -------------------------------------------------------------------------

    def on_connect(self, peer: Peer) -> Connection:
        """Register a new client connection."""
        conn = Connection(self.app, self.transport, peer)
        self._connections[peer] = conn
        logger.debug(f"Listening from {peer.name}")
        return conn

    async def on_data(self, peer: Peer, data: bytes) -> DispatchResult:
        """Dispatch one chunk received from a client."""
        conn = self._connections.get(peer)
        if conn is None:
            conn = self.on_connect(peer)
        if conn.closed:
            logger.debug(f"Ignoring data from closed connection {peer.name}")
            return DispatchResult.unmatched()

        text = data.decode(ENCODING, errors="replace")
        logger.info(f"{peer.name} is saying: {text.strip()}")

        result = await self.dispatch(conn, text)

        if result.status is DispatchStatus.ERROR:
            logger.error(f"Error while dispatching data from {peer.name}: {result.description}", exc_info=result.error)
            conn.say(f"ERROR {result.description}")

        return result

    def on_disconnect(self, peer: Peer) -> None:
        """Forget a client connection."""
        conn = self._connections.pop(peer, None)
        if conn is not None:
            conn.state = ConnectionState.CLOSED
            conn.request = None
        logger.debug(f"Connection with {peer.name} has been closed")

    def close(self, peer: Peer) -> None:
        """Disconnect a client."""
        conn = self._connections.get(peer)
        if conn is not None:
            conn.close()
        else:
            self.transport.disconnect(peer)

    # -------------------------------------------------------------------------
    # Dispatch
    # -------------------------------------------------------------------------

    async def dispatch(self, conn: Connection, text: str) -> DispatchResult:
        """Match and process a command on a connection.

        Never raises for errors in filters or handler bodies; they are
        returned as a failed result instead.
        """
        handler: Handler | None = None
        conn.state = ConnectionState.DISPATCHING
        try:
            found = self.app.handlers.find(text)
            if found is None:
                return DispatchResult.unmatched()

            handler, match = found
            conn.request = Request.build(match, handler, conn.session)

            await self.app.filters.run(FilterKind.BEFORE, handler, conn)
            response = await self._call(handler, conn)
            if not _is_empty(response):
                conn.say(response)
            await self.app.filters.run(FilterKind.AFTER, handler, conn)

            return DispatchResult.success(handler, response)

        except Exception as e:
            return DispatchResult.failure(e, handler)

        finally:
            if conn.state is ConnectionState.DISPATCHING:
                conn.state = ConnectionState.IDLE

    async def _call(self, handler: Handler, conn: Connection) -> Any:
        """Invoke a handler body, awaiting it if it is a coroutine."""
        if handler.body is None:
            return None
        result = handler.body(conn)
        if inspect.isawaitable(result):
            result = await result
        return result
