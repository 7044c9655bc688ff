"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import pytest

from telegraph import Application, Dispatcher, Peer, Transport


class RecordingTransport(Transport):
    """In-memory transport that records what is written to each peer."""

    def __init__(self) -> None:
        self.written: dict[Peer, list[bytes]] = {}
        self.disconnected: list[Peer] = []
        self.listener = None

    async def listen(self, host, port, listener):
        self.listener = listener

    def write(self, peer, data):
        self.written.setdefault(peer, []).append(data)

    def disconnect(self, peer):
        self.disconnected.append(peer)

    async def close(self):
        pass

    def output(self, peer: Peer) -> bytes:
        """Everything written to a peer so far."""
        return b"".join(self.written.get(peer, []))

    def lines(self, peer: Peer) -> list[str]:
        """Written data split into lines."""
        return self.output(peer).decode("utf-8").splitlines()


@pytest.fixture
def app() -> Application:
    """Application with test environment."""
    application = Application("test-app")
    application.set("environment", "test")
    return application


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def dispatcher(app: Application, transport: RecordingTransport) -> Dispatcher:
    return Dispatcher(app, transport)


@pytest.fixture
def peer() -> Peer:
    return Peer("127.0.0.1", 50000)
