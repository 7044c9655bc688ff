"""Unit tests for the connection context and its response helpers."""

import pytest

from telegraph import Connection, ConnectionState


@pytest.fixture
def conn(app, transport, peer):
    return Connection(app, transport, peer)


class TestResponses:
    """Test send/say/respond."""

    def test_send_raw(self, conn, transport, peer):
        conn.send("raw")

        assert transport.output(peer) == b"raw"

    def test_send_bytes(self, conn, transport, peer):
        conn.send(b"\x00\x01")

        assert transport.output(peer) == b"\x00\x01"

    def test_say_adds_newline(self, conn, transport, peer):
        conn.say("Hello buddy")

        assert transport.output(peer) == b"Hello buddy\n"

    def test_answer_is_say(self, conn, transport, peer):
        conn.answer("Whazzuup?")

        assert transport.output(peer) == b"Whazzuup?\n"

    def test_say_none_sends_nothing(self, conn, transport, peer):
        conn.say(None)

        assert transport.output(peer) == b""

    def test_say_bytes(self, conn, transport, peer):
        conn.say(b"PONG")

        assert transport.output(peer) == b"PONG\n"

    def test_say_non_string(self, conn, transport, peer):
        conn.say(42)

        assert transport.output(peer) == b"42\n"

    def test_say_unicode(self, conn, transport, peer):
        conn.say("zażółć")

        assert transport.output(peer) == "zażółć\n".encode()

    def test_respond_tag_only(self, conn, transport, peer):
        conn.respond("ok")

        assert transport.lines(peer) == ["OK"]

    def test_respond_tag_with_args(self, conn, transport, peer):
        conn.respond("foo_bar", "blah")
        conn.respond("this_is", "sparta", 300)

        assert transport.lines(peer) == ["FOO_BAR blah", "THIS_IS sparta 300"]

    def test_respond_flattens_sequences(self, conn, transport, peer):
        conn.respond("list", ["a", "b"], "c")

        assert transport.lines(peer) == ["LIST a b c"]


class TestState:
    """Test connection state and shortcuts."""

    def test_initial_state(self, conn):
        assert conn.state is ConnectionState.IDLE
        assert not conn.closed

    def test_idle_request_is_empty(self, conn):
        assert conn.request.query is None
        assert conn.request.handler is None
        assert conn.params == {}
        assert conn.request.session is conn.session

    def test_close(self, conn, transport, peer):
        conn.close()
        conn.close()

        assert conn.closed
        assert transport.disconnected == [peer]

    def test_settings_shortcuts(self, conn, app):
        app.set("foo", "bar")

        assert conn.settings.get("foo") == "bar"
        assert conn.config is app.settings
        assert conn.environment == "test"
        assert conn.test
        assert not conn.production
        assert conn.logger is app.logger

    def test_peer_name(self, conn):
        assert conn.peer_name == "127.0.0.1:50000"

    def test_helpers_bound_to_connection(self, app, conn, transport, peer):
        @app.helper
        def greet(c, who):
            c.say(f"Hello {who}!")
            return c is conn

        assert conn.helpers.greet("world") is True
        assert transport.lines(peer) == ["Hello world!"]
