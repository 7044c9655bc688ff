"""Telegraph application.

An Application owns its handler registry, filters, helpers and
settings. Everything is registered up front, then the application is
started and serves connections until it is stopped:

    app = Application("echo")
    app.set("port", 4000)

    @app.before()
    def greet(conn):
        conn.say("Ring! Ring!")

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

    @app.after("foo")
    def after_foo(conn):
        conn.say("bar")

    app.run()
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import signal
from collections.abc import Callable, Iterable
from typing import Any

import click

from .dispatcher import Dispatcher
from .filters import GLOBAL, FilterBody, FilterKind, FilterRegistry
from .handler import Handler, HandlerBody, HandlerRegistry, Pattern, PatternScope
from .settings import Settings
from .transport import TcpTransport, Transport

logger = logging.getLogger(__name__)


class Application:
    """Registries, settings and lifecycle of a Telegraph server."""

    def __init__(self, name: str = "telegraph", settings: Settings | None = None):
        self.name = name
        self.settings = settings or Settings()
        self.handlers = HandlerRegistry()
        self.filters = FilterRegistry()
        self.helpers: dict[str, Callable[..., Any]] = {}
        self.cli_options: list[click.Option] = []
        self.logger = logging.getLogger(f"telegraph.app.{name}")

        self.transport: Transport | None = None
        self.dispatcher: Dispatcher | None = None
        self._stopped: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self.dispatcher is not None

    def _check_not_running(self) -> None:
        if self.running:
            raise RuntimeError("Cannot register while the application is running")

    # =========================================================================
    # Registration
    # =========================================================================

    def add_handler(
        self,
        pattern: Pattern | None,
        body: HandlerBody,
        *,
        name: str | None = None,
        **options: Any,
    ) -> Handler:
        """Register a handler body for a pattern.

        Raises:
            InvalidPattern: If no pattern can be derived.
        """
        self._check_not_running()
        if "with_" in options:
            options["with"] = options.pop("with_")
        return self.handlers.register(pattern, options, body, name=name)

    def handle(
        self,
        pattern: Pattern | None = None,
        *,
        name: str | None = None,
        **options: Any,
    ) -> Callable[[HandlerBody], HandlerBody]:
        """Decorator registering a handler.

        Handlers are matched in the order they are defined. Capture groups
        can be given names with ``with_``:

            @app.handle(re.compile(r"^FOO (\\w+) (\\w+)"), with_=["id"])
            def foo(conn):
                conn.params["id"], conn.params[0]

        Named handlers take their pattern from ``match``:

            @app.handle(name="foo", match=re.compile(r"^FOO (\\w+)"))
        """

        def decorator(body: HandlerBody) -> HandlerBody:
            self.add_handler(pattern, body, name=name, **options)
            return body

        return decorator

    def before(
        self, scope: Any = GLOBAL, *, pattern: Pattern | None = None
    ) -> Callable[[FilterBody], FilterBody]:
        """Decorator for a filter run before handlers.

        Without arguments the filter is global. Given a handler name it
        only runs for that named handler; ``pattern`` scopes it to the
        anonymous handler registered with that pattern instead:

            @app.before("foo")               # handle(name="foo", ...)
            @app.before(pattern="PING")      # handle("PING")
        """
        return self._filter_decorator(FilterKind.BEFORE, scope, pattern)

    def after(
        self, scope: Any = GLOBAL, *, pattern: Pattern | None = None
    ) -> Callable[[FilterBody], FilterBody]:
        """Decorator for a filter run after handlers. See ``before``."""
        return self._filter_decorator(FilterKind.AFTER, scope, pattern)

    def add_filter(self, kind: FilterKind | str, body: FilterBody, scope: Any = GLOBAL) -> FilterBody:
        self._check_not_running()
        return self.filters.add(kind, body, scope)

    def _filter_decorator(
        self, kind: FilterKind, scope: Any, pattern: Pattern | None
    ) -> Callable[[FilterBody], FilterBody]:
        if pattern is not None:
            scope = PatternScope(pattern)

        def decorator(body: FilterBody) -> FilterBody:
            return self.add_filter(kind, body, scope)

        return decorator

    def helper(self, fn: Callable[..., Any]) -> Callable[..., Any]:
        """Register a helper, available as ``conn.helpers.<name>(...)``.

        The connection is passed as the first argument.
        """
        self.helpers[fn.__name__] = fn
        return fn

    def option(self, *param_decls: str, setting: str | None = None, **attrs: Any) -> None:
        """Add a command line option whose value is stored in settings.

            app.option("-t", "--test", setting="test")
        """

        def store(ctx: click.Context, param: click.Parameter, value: Any) -> Any:
            if value is not None:
                self.set(setting or param.name, value)
            return value

        self.cli_options.append(click.Option(list(param_decls), expose_value=False, callback=store, **attrs))

    # =========================================================================
    # Settings
    # =========================================================================

    def set(self, key: str, value: Any) -> None:
        self.settings.set(key, value)

    def enable(self, key: str) -> None:
        self.settings.enable(key)

    def disable(self, key: str) -> None:
        self.settings.disable(key)

    @property
    def environment(self) -> str:
        return self.settings.environment

    def configure(self, *envs: str | Iterable[str]) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """Decorator running a configuration function right away.

        The function receives the application and only runs when no
        environments are given or the current environment is listed:

            @app.configure("production", "test")
            def setup(app):
                app.disable("debug")
        """

        def decorator(fn: Callable[..., Any]) -> Callable[..., Any]:
            if self.settings.configure(*envs):
                fn(self)
            return fn

        return decorator

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def start(self, transport: Transport | None = None) -> Dispatcher:
        """Bind the listener and start accepting connections.

        Raises:
            AddressInUse: If the port is taken.
            pydantic.ValidationError: If host or port settings are invalid.
        """
        if self.running:
            raise RuntimeError("Application is already running")

        config = self.settings.server_config()
        self.transport = transport or TcpTransport()
        dispatcher = Dispatcher(self, self.transport)

        await self.transport.listen(config.host, config.port, dispatcher)
        self.dispatcher = dispatcher
        self._stopped = asyncio.Event()

        click.echo(f"== Telegraph is waiting for connection on {config.host}:{config.port} for {config.environment}")
        return dispatcher

    async def stop(self) -> None:
        """Stop accepting connections and disconnect clients."""
        if self.transport is not None:
            await self.transport.close()
        self.dispatcher = None
        if self._stopped is not None:
            self._stopped.set()

    async def serve(self, transport: Transport | None = None) -> None:
        """Run the server until ``stop()`` is called or a signal arrives."""
        await self.start(transport)
        assert self._stopped is not None
        stopped = self._stopped
        self._register_signal_traps()
        try:
            await stopped.wait()
        finally:
            self._remove_signal_traps()
            if self.running:
                await self.stop()

    def run(self) -> None:
        """Blocking entry point."""
        asyncio.run(self.serve())

    def _register_signal_traps(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self._on_signal, sig)
            except (NotImplementedError, RuntimeError):
                # Windows event loops have no signal handler support
                logger.debug(f"Cannot install handler for {sig.name}")

    def _remove_signal_traps(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            with contextlib.suppress(NotImplementedError, RuntimeError):
                loop.remove_signal_handler(sig)

    def _on_signal(self, sig: signal.Signals) -> None:
        logger.info(f"== Received {sig.name}, cleaning up...")
        if self._stopped is not None:
            self._stopped.set()

    # =========================================================================
    # Command line
    # =========================================================================

    def cli(self) -> click.Command:
        """Build the command line interface of this application."""
        from .cli import build_command

        return build_command(self)

    def main(self, args: list[str] | None = None) -> None:
        """Parse command line arguments and run the application."""
        self.cli().main(args=args, prog_name=self.name)

    def __repr__(self) -> str:
        return f"Application({self.name!r}, handlers={len(self.handlers)})"
