"""Telegraph command line.

Every application gets a command line built from its settings:

    python myserver.py -p 4000 -e production
    python myserver.py --host 0.0.0.0 --debug

where ``myserver.py`` ends with ``app.main()``. The ``telegraph``
console script runs an application given its import path:

    telegraph myserver:app                 # localhost:1234, development
    telegraph myserver:app -p 4000 -d      # port 4000, debug logging
    telegraph myserver:create_app -e test  # factory returning an Application

Options:
    -e, --env    runtime environment (development, test, production, ...)
    -p, --port   port to listen on
    -h, --host   host to bind to
    -d, --debug  enable debug logging
"""

from __future__ import annotations

import importlib
import logging
import sys
from typing import TYPE_CHECKING, Any

import click
from pydantic import ValidationError

from .errors import AddressInUse

if TYPE_CHECKING:
    from .application import Application
    from .settings import Settings

LOG_FORMAT = "\033[33m[%(asctime)s]\033[0m %(levelname)-5s: %(message)s"


def configure_logging(settings: Settings) -> None:
    """Send log records to stdout at a level derived from settings.

    Debug mode logs everything; production only logs errors.
    """
    if settings.get("debug"):
        level = logging.DEBUG
    elif settings.production:
        level = logging.ERROR
    else:
        level = logging.INFO

    logging.basicConfig(level=level, format=LOG_FORMAT, stream=sys.stdout, force=True)


def apply_options(
    settings: Settings,
    environment: str | None = None,
    port: int | None = None,
    host: str | None = None,
    debug: bool = False,
) -> None:
    """Store command line values in settings. Unset options are left alone."""
    if environment:
        settings.set("environment", environment)
    if port is not None:
        settings.set("port", port)
    if host:
        settings.set("host", host)
    if debug:
        settings.enable("debug")


def run_application(app: Application) -> None:
    """Run an application, turning startup failures into exit codes."""
    try:
        app.run()
    except AddressInUse as e:
        click.echo(f"== Someone is already performing on port {e.port}!", err=True)
        sys.exit(1)
    except ValidationError as e:
        click.echo(f"Invalid server settings: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nShutting down", err=True)


def build_command(app: Application) -> click.Command:
    """Build the click command for an application."""

    @click.command(name=app.name)
    @click.option("-e", "--env", "environment", help="Runtime environment (e.g. development, production)")
    @click.option("-p", "--port", type=int, help="Port to listen on")
    @click.option("-h", "--host", help="Host to bind to")
    @click.option("-d", "--debug", is_flag=True, help="Enable debug logging")
    def command(environment: str | None, port: int | None, host: str | None, debug: bool) -> None:
        """Run the Telegraph server."""
        apply_options(app.settings, environment=environment, port=port, host=host, debug=debug)
        configure_logging(app.settings)
        run_application(app)

    command.params.extend(app.cli_options)
    return command


def load_app(path: str) -> Application:
    """Import an application from ``module:attribute``.

    The attribute defaults to ``app``. A callable that is not an
    Application is treated as a factory and called without arguments.
    """
    from .application import Application

    module_name, _, attr = path.partition(":")
    attr = attr or "app"

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise click.BadParameter(f"Cannot import module {module_name!r}: {e}", param_hint="APP") from e

    target: Any = getattr(module, attr, None)
    if target is None:
        raise click.BadParameter(f"Module {module_name!r} has no attribute {attr!r}", param_hint="APP")

    if not isinstance(target, Application) and callable(target):
        target = target()

    if not isinstance(target, Application):
        raise click.BadParameter(f"{path!r} is not a Telegraph application", param_hint="APP")

    return target


@click.command(
    context_settings={
        "ignore_unknown_options": True,
        "allow_extra_args": True,
        "help_option_names": ["--help"],
    }
)
@click.argument("app_path", metavar="APP")
@click.pass_context
def main(ctx: click.Context, app_path: str) -> None:
    """Run a Telegraph application given as module:attribute.

    Remaining arguments are handed to the application's own command line.
    """
    app = load_app(app_path)
    app.main(list(ctx.args))


if __name__ == "__main__":
    main()
