"""Command handlers and the handler registry.

A handler pairs a pattern with a body. When an inbound command matches
the pattern, the body is called with the connection context and its
return value becomes the response line.

Patterns can be literal strings or compiled regular expressions:

    registry.register(re.compile(r"^HELLO"), {}, hello)
    registry.register("PING", {}, ping)

Handlers can also be registered under a symbolic name, in which case
the pattern comes from the ``match`` option and the name is what
filters are scoped to:

    registry.register(None, {"match": re.compile(r"^FOO .*")}, foo, name="foo")

Filters scoped to an anonymous handler are keyed by its pattern wrapped
in a PatternScope, so a literal pattern never collides with a symbolic
name spelled the same way.

Lookup walks handlers in registration order and the first match wins,
so specific patterns must be registered before general ones.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .errors import InvalidPattern

if TYPE_CHECKING:
    from .connection import Connection

logger = logging.getLogger(__name__)

HandlerBody = Callable[["Connection"], Any]
Pattern = str | re.Pattern[str]


@dataclass(frozen=True)
class PatternScope:
    """Filter scope key of a handler registered without a name."""

    pattern: Pattern


class Handler:
    """Pattern, name, options and body of a registered command handler."""

    __slots__ = ("_pattern", "_name", "_scope", "_options", "_body", "_regex")

    def __init__(
        self,
        pattern: Pattern | None,
        options: dict[str, Any] | None = None,
        body: HandlerBody | None = None,
        *,
        name: str | None = None,
    ):
        """Create a handler.

        Args:
            pattern: Literal text or compiled regex. May be None when
                ``name`` is given and the pattern comes from ``options["match"]``.
            options: Option bag. ``with`` lists parameter names bound to
                capture groups, ``match`` holds the pattern of a named handler.
            body: Callable invoked with the connection on match.
            name: Symbolic name used to scope filters.

        Raises:
            InvalidPattern: If no string or regex pattern can be derived.
        """
        options = dict(options or {})
        if isinstance(options.get("with"), str):
            options["with"] = [options["with"]]

        if name is not None and pattern is None:
            pattern = options.get("match")

        if not isinstance(pattern, str | re.Pattern):
            raise InvalidPattern(f"Defined pattern seems to be invalid: {pattern!r}")

        self._pattern = pattern
        self._name = name if name is not None else pattern
        self._scope = name if name is not None else PatternScope(pattern)
        self._options = options
        self._body = body
        self._regex = re.compile(re.escape(pattern)) if isinstance(pattern, str) else pattern

    @property
    def pattern(self) -> Pattern:
        return self._pattern

    @property
    def name(self) -> Any:
        """The symbolic name, or the pattern itself for anonymous handlers."""
        return self._name

    @property
    def scope(self) -> str | PatternScope:
        """Key filters are registered under for this handler."""
        return self._scope

    @property
    def options(self) -> dict[str, Any]:
        return self._options

    @property
    def body(self) -> HandlerBody | None:
        return self._body

    @property
    def param_names(self) -> list[str]:
        """Names bound to capture groups, in order."""
        return list(self._options.get("with") or [])

    def match(self, command: str) -> re.Match[str] | None:
        """Match a command against this handler's pattern.

        The match is unanchored; a regex pattern anchors itself if needed.
        """
        return self._regex.search(command)

    def __repr__(self) -> str:
        return f"Handler(name={self._name!r}, pattern={self._pattern!r})"


class HandlerRegistry:
    """Ordered collection of handlers with first-match lookup."""

    def __init__(self) -> None:
        self._handlers: list[Handler] = []

    def register(
        self,
        pattern: Pattern | None,
        options: dict[str, Any] | None = None,
        body: HandlerBody | None = None,
        *,
        name: str | None = None,
    ) -> Handler:
        """Create and register a handler.

        Raises:
            InvalidPattern: If no usable pattern can be derived.
        """
        handler = Handler(pattern, options, body, name=name)
        self._handlers.append(handler)
        logger.debug(f"Registered handler: {handler!r}")
        return handler

    def lookup(self, command: str) -> Handler | None:
        """Return the first handler matching the command, if any."""
        found = self.find(command)
        return found[0] if found else None

    def find(self, command: str) -> tuple[Handler, re.Match[str]] | None:
        """Find the first handler matching the command.

        Returns:
            The handler and its match object, or None if nothing matches.
        """
        for handler in self._handlers:
            match = handler.match(command)
            if match is not None:
                return handler, match
        return None

    def __iter__(self) -> Iterator[Handler]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)
