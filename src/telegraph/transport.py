"""Transport layer.

The transport owns sockets and the accept loop. It delivers raw chunks
to a listener (the dispatcher) and exposes write/disconnect primitives.
No framing is applied: every chunk read from a socket is handed over
as-is.

Callbacks delivered to the listener:
- on_connect(peer)
- on_data(peer, data)
- on_disconnect(peer)
"""

from __future__ import annotations

import asyncio
import contextlib
import errno
import logging
from abc import ABC, abstractmethod
from typing import Protocol

from .errors import AddressInUse

logger = logging.getLogger(__name__)

# Maximum bytes read from a socket per chunk
BUFFER_SIZE = 4096


class Peer:
    """A connected client."""

    def __init__(self, host: str, port: int, writer: asyncio.StreamWriter | None = None):
        self.host = host
        self.port = port
        self._writer = writer

    @property
    def name(self) -> str:
        """Identifier of the client as ``host:port``."""
        return f"{self.host}:{self.port}"

    @classmethod
    def from_writer(cls, writer: asyncio.StreamWriter) -> Peer:
        peername = writer.get_extra_info("peername") or ("unknown", 0)
        return cls(str(peername[0]), int(peername[1]), writer)

    def __repr__(self) -> str:
        return f"Peer({self.name})"


class TransportListener(Protocol):
    """Receiver of transport callbacks."""

    def on_connect(self, peer: Peer) -> None: ...

    async def on_data(self, peer: Peer, data: bytes) -> None: ...

    def on_disconnect(self, peer: Peer) -> None: ...


class Transport(ABC):
    """Abstract transport contract used by the dispatcher."""

    @abstractmethod
    async def listen(self, host: str, port: int, listener: TransportListener) -> None:
        """Start accepting connections.

        Raises:
            AddressInUse: If the address is already bound.
        """

    @abstractmethod
    def write(self, peer: Peer, data: bytes) -> None:
        """Queue bytes for a peer."""

    @abstractmethod
    def disconnect(self, peer: Peer) -> None:
        """Close the connection with a peer."""

    @abstractmethod
    async def close(self) -> None:
        """Stop accepting connections and drop connected peers."""


class TcpTransport(Transport):
    """asyncio TCP transport.

    Each accepted connection runs its own read loop; a chunk is fully
    dispatched before the next chunk from the same connection is read.
    """

    def __init__(self, buffer_size: int = BUFFER_SIZE):
        self._buffer_size = buffer_size
        self._server: asyncio.Server | None = None
        self._listener: TransportListener | None = None
        self._peers: set[Peer] = set()

    @property
    def is_listening(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def sockets(self) -> list[tuple]:
        """Bound addresses, useful when listening on port 0."""
        if self._server is None:
            return []
        return [sock.getsockname() for sock in self._server.sockets]

    async def listen(self, host: str, port: int, listener: TransportListener) -> None:
        self._listener = listener
        try:
            self._server = await asyncio.start_server(self._handle_client, host, port)
        except OSError as e:
            if e.errno == errno.EADDRINUSE:
                raise AddressInUse(host, port) from e
            raise
        logger.debug(f"Listening on {self.sockets}")

    async def _handle_client(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        """Read loop for a single connection."""
        if self._listener is None:
            raise RuntimeError("Transport accepted a connection without a listener")
        peer = Peer.from_writer(writer)
        self._peers.add(peer)
        self._listener.on_connect(peer)

        try:
            while True:
                try:
                    data = await reader.read(self._buffer_size)
                except ConnectionError as e:
                    logger.debug(f"Read from {peer.name} failed: {e}")
                    break
                if not data:
                    break

                await self._listener.on_data(peer, data)

                if writer.is_closing():
                    break
                try:
                    await writer.drain()
                except ConnectionError as e:
                    logger.debug(f"Write to {peer.name} failed: {e}")
                    break
        finally:
            self._peers.discard(peer)
            self._listener.on_disconnect(peer)
            writer.close()
            with contextlib.suppress(ConnectionError):
                await writer.wait_closed()

    def write(self, peer: Peer, data: bytes) -> None:
        writer = peer._writer
        if writer is None or writer.is_closing():
            logger.debug(f"Dropping {len(data)} bytes for closed peer {peer.name}")
            return
        writer.write(data)

    def disconnect(self, peer: Peer) -> None:
        if peer._writer is not None and not peer._writer.is_closing():
            peer._writer.close()

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        for peer in list(self._peers):
            self.disconnect(peer)
        await self._server.wait_closed()
        self._server = None
