"""Integration tests running applications over real TCP sockets.

Each test starts the asyncio TCP transport on an ephemeral port and
talks to it with asyncio stream clients.
"""

import asyncio
import contextlib
import re

import pytest
import pytest_asyncio

from telegraph import AddressInUse, Application, TcpTransport

pytestmark = pytest.mark.integration

TIMEOUT = 5


def build_app() -> Application:
    app = Application("integration")
    app.set("environment", "test")
    app.set("host", "127.0.0.1")
    app.set("port", 0)

    @app.handle(re.compile(r"^HELLO"))
    def hello(conn):
        return "HI DUDE!"

    @app.handle(re.compile(r"^TEST (.*)"), with_=["test"])
    def test(conn):
        conn.session["test"] = conn.params["test"]
        conn.respond("ok")

    @app.handle(name="foo", match=re.compile(r"^FOO .*"))
    def foo(conn):
        conn.say("This is SPARTA!")
        conn.say("Kick!")
        return conn.session.get("test")

    @app.after("foo")
    def after_foo(conn):
        conn.say("bar")

    @app.handle(re.compile(r"^BOOM"))
    def boom(conn):
        raise RuntimeError("something broke")

    @app.handle(re.compile(r"^(QUIT|EXIT|CLOSE)"))
    def quit_(conn):
        conn.say("BYE!")
        conn.close()

    return app


@pytest_asyncio.fixture
async def server():
    app = build_app()
    transport = TcpTransport()
    await app.start(transport)
    host, port = transport.sockets[0][:2]
    yield app, host, port
    if app.running:
        await app.stop()


@pytest_asyncio.fixture
async def client(server):
    _, host, port = server
    reader, writer = await asyncio.open_connection(host, port)
    yield reader, writer
    writer.close()
    with contextlib.suppress(ConnectionError):
        await writer.wait_closed()


async def send(client, text: str) -> None:
    _, writer = client
    writer.write(text.encode())
    await writer.drain()


async def read_line(client) -> str:
    reader, _ = client
    line = await asyncio.wait_for(reader.readline(), timeout=TIMEOUT)
    return line.decode()


class TestEndToEnd:
    """Scenarios over a live connection."""

    @pytest.mark.asyncio
    async def test_hello(self, client):
        await send(client, "HELLO\n")

        assert await read_line(client) == "HI DUDE!\n"

    @pytest.mark.asyncio
    async def test_session_and_named_handler(self, client):
        await send(client, "TEST abc\n")
        assert await read_line(client) == "OK\n"

        await send(client, "FOO x\n")
        lines = [await read_line(client) for _ in range(4)]

        # handler returns the stored session value after its own output
        assert lines == ["This is SPARTA!\n", "Kick!\n", "abc\n", "bar\n"]

    @pytest.mark.asyncio
    async def test_unknown_command_produces_nothing(self, client):
        await send(client, "NOPE\n")
        await asyncio.sleep(0.05)
        await send(client, "HELLO\n")

        assert await read_line(client) == "HI DUDE!\n"

    @pytest.mark.asyncio
    async def test_error_keeps_connection_open(self, client):
        await send(client, "BOOM\n")
        assert await read_line(client) == "ERROR something broke\n"

        await send(client, "HELLO\n")
        assert await read_line(client) == "HI DUDE!\n"

    @pytest.mark.asyncio
    async def test_quit_closes_connection(self, client):
        reader, _ = client
        await send(client, "QUIT\n")

        assert await read_line(client) == "BYE!\n"
        assert await asyncio.wait_for(reader.read(), timeout=TIMEOUT) == b""

    @pytest.mark.asyncio
    async def test_sessions_are_isolated(self, server, client):
        _, host, port = server
        other = await asyncio.open_connection(host, port)
        try:
            await send(client, "TEST mine\n")
            assert await read_line(client) == "OK\n"

            await send(other, "FOO y\n")
            lines = [await read_line(other) for _ in range(3)]

            assert lines == ["This is SPARTA!\n", "Kick!\n", "bar\n"]
        finally:
            other[1].close()


class TestServerLifecycle:
    """Starting and stopping the listener."""

    @pytest.mark.asyncio
    async def test_address_in_use(self, server):
        _, host, port = server
        second = Application("second")
        second.set("host", host)
        second.set("port", port)

        with pytest.raises(AddressInUse) as exc_info:
            await second.start(TcpTransport())

        assert exc_info.value.port == port
        assert not second.running

    @pytest.mark.asyncio
    async def test_stop_disconnects_clients(self, server, client):
        app, _, _ = server
        reader, _ = client
        await send(client, "HELLO\n")
        assert await read_line(client) == "HI DUDE!\n"

        await app.stop()

        assert await asyncio.wait_for(reader.read(), timeout=TIMEOUT) == b""
        assert not app.running
