"""Before and after filters.

Filters are bodies executed around a handler. A filter is either global
(runs for every matched command) or scoped to a handler name:

    filters.add(FilterKind.BEFORE, log_command)           # global
    filters.add(FilterKind.AFTER, send_footer, "foo")     # only for "foo"
    filters.add(FilterKind.AFTER, log_ping, PatternScope("PING"))  # anonymous "PING"

For a given kind, global filters always run first, followed by the
filters scoped to the matched handler, each in registration order.
A plain string scope is always a handler name; a compiled regex scope
is taken to be the pattern of an anonymous handler.
Filters share the connection context with the handler and may send
output themselves. They are not isolated: an exception raised by a
filter aborts the rest of the command.
"""

from __future__ import annotations

import inspect
import logging
import re
from collections.abc import Callable
from enum import Enum
from typing import TYPE_CHECKING, Any

from .handler import PatternScope

if TYPE_CHECKING:
    from .connection import Connection
    from .handler import Handler

logger = logging.getLogger(__name__)

FilterBody = Callable[["Connection"], Any]


class FilterKind(str, Enum):
    """When a filter runs relative to the handler body."""

    BEFORE = "before"
    AFTER = "after"


class _GlobalScope:
    """Scope key for filters that apply to every handler."""

    def __repr__(self) -> str:
        return "GLOBAL"


GLOBAL: Any = _GlobalScope()


def scope_key(scope: Any) -> Any:
    """Normalize a filter scope; regex patterns refer to anonymous handlers."""
    if isinstance(scope, re.Pattern):
        return PatternScope(scope)
    return scope


class FilterRegistry:
    """Ordered before/after filters keyed by scope."""

    def __init__(self) -> None:
        self._filters: dict[FilterKind, dict[Any, list[FilterBody]]] = {
            FilterKind.BEFORE: {},
            FilterKind.AFTER: {},
        }

    def add(self, kind: FilterKind | str, body: FilterBody, scope: Any = GLOBAL) -> FilterBody:
        """Register a filter.

        Args:
            kind: ``before`` or ``after``
            body: Callable invoked with the connection context
            scope: Handler name, anonymous handler pattern, or GLOBAL

        Returns:
            The body, so this can back a decorator.
        """
        kind = FilterKind(kind)
        scope = scope_key(scope)
        self._filters[kind].setdefault(scope, []).append(body)
        logger.debug(f"Registered {kind.value} filter {getattr(body, '__name__', body)!r} for {scope!r}")
        return body

    def get(self, kind: FilterKind | str, scope: Any = GLOBAL) -> list[FilterBody]:
        """Filters of a kind registered under exactly this scope."""
        return list(self._filters[FilterKind(kind)].get(scope_key(scope), []))

    def resolve(self, kind: FilterKind | str, handler: Handler) -> list[FilterBody]:
        """Filters to run for a handler: global ones, then handler-scoped ones."""
        kind = FilterKind(kind)
        group = list(self._filters[kind].get(GLOBAL, []))
        group.extend(self._filters[kind].get(handler.scope, []))
        return group

    async def run(self, kind: FilterKind | str, handler: Handler, context: Connection) -> None:
        """Run resolved filters in order against the connection context."""
        for body in self.resolve(kind, handler):
            result = body(context)
            if inspect.isawaitable(result):
                await result
