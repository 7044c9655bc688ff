"""Request objects built for every matched command."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .handler import Handler


@dataclass
class Request:
    """Information about the command being processed.

    Attributes:
        query: Text matched by the handler's pattern.
        params: Parameters extracted from capture groups. Names listed in
            the handler's ``with`` option are bound left to right; any
            remaining captures are keyed by their 0-based position among
            the remaining captures.
        session: Per-connection session mapping.
        handler: The matched handler.
    """

    query: str | None = None
    params: dict[Any, str | None] = field(default_factory=dict)
    session: dict[str, Any] | None = None
    handler: Handler | None = None

    @property
    def command(self) -> str | None:
        """Alias for ``query``."""
        return self.query

    @classmethod
    def build(
        cls,
        match: re.Match[str] | None = None,
        handler: Handler | None = None,
        session: dict[str, Any] | None = None,
    ) -> Request:
        """Build a request from a match result.

        Without a match (or handler) this returns the empty request used
        before any command has been received.
        """
        if match is None or handler is None:
            return cls.empty(session)

        return cls(
            query=match.group(0),
            params=discover_params(match.groups(), handler.param_names),
            session=session,
            handler=handler,
        )

    @classmethod
    def empty(cls, session: dict[str, Any] | None = None) -> Request:
        """Idle request with no handler and no params."""
        return cls(session=session)


def discover_params(captures: tuple[str | None, ...], names: list[str]) -> dict[Any, str | None]:
    """Bind capture groups to parameter keys.

    >>> discover_params(("x", "y", "z"), ["a", "b"])
    {'a': 'x', 'b': 'y', 0: 'z'}
    """
    names = list(names)
    params: dict[Any, str | None] = {}
    extra = 0
    for value in captures:
        if names:
            params[names.pop(0)] = value
        else:
            params[extra] = value
            extra += 1
    return params
