"""Application settings.

Settings is a flat, mutable key-value store. Writes overwrite; reads of
the well-known server keys fall back to defaults instead of failing:

    settings.set("port", 4000)
    settings.enable("debug")
    settings.get("host")         # "localhost"
    settings.environment         # "development" unless set or TELEGRAPH_ENV

Environment resolution, highest precedence first:
1. an explicit ``set("environment", ...)``
2. the TELEGRAPH_ENV environment variable
3. "development"

ServerConfig validates the listener-related keys before the server
binds its socket.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Iterator
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

ENV_VAR = "TELEGRAPH_ENV"

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 1234
DEFAULT_ENVIRONMENT = "development"

DEFAULTS: dict[str, Any] = {
    "host": DEFAULT_HOST,
    "port": DEFAULT_PORT,
    "debug": False,
}


class ServerConfig(BaseModel):
    """Validated listener configuration."""

    host: str = DEFAULT_HOST
    port: int = Field(default=DEFAULT_PORT, ge=0, le=65535)
    environment: str = DEFAULT_ENVIRONMENT
    debug: bool = False


class Settings:
    """Flat key-value application configuration."""

    def __init__(self, values: dict[str, Any] | None = None) -> None:
        self._values: dict[str, Any] = dict(values or {})

    def set(self, key: str, value: Any) -> None:
        """Assign a value; last write wins."""
        self._values[key] = value
        logger.debug(f"Setting {key} = {value!r}")

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value, falling back to the documented default."""
        if key == "environment":
            return self.environment
        if key in self._values:
            return self._values[key]
        if default is None:
            return DEFAULTS.get(key)
        return default

    def enable(self, key: str) -> None:
        """Shortcut for ``set(key, True)``."""
        self.set(key, True)

    def disable(self, key: str) -> None:
        """Shortcut for ``set(key, False)``."""
        self.set(key, False)

    @property
    def environment(self) -> str:
        value = self._values.get("environment") or os.environ.get(ENV_VAR) or DEFAULT_ENVIRONMENT
        return str(value)

    @property
    def development(self) -> bool:
        return self.environment == "development"

    @property
    def test(self) -> bool:
        return self.environment == "test"

    @property
    def production(self) -> bool:
        return self.environment == "production"

    def configure(self, *envs: str | Iterable[str]) -> bool:
        """Check the environment gate for a configuration block.

        Returns True when no environments are given or the current
        environment is one of them.
        """
        names: list[str] = []
        for env in envs:
            if isinstance(env, str):
                names.append(env)
            else:
                names.extend(env)
        return not names or self.environment in names

    def server_config(self) -> ServerConfig:
        """Validate the listener-related settings.

        Raises:
            pydantic.ValidationError: If host or port are unusable.
        """
        return ServerConfig(
            host=self.get("host"),
            port=self.get("port"),
            environment=self.environment,
            debug=bool(self.get("debug")),
        )

    def as_dict(self) -> dict[str, Any]:
        """Snapshot of explicit values merged over defaults."""
        data = {**DEFAULTS, **self._values}
        data["environment"] = self.environment
        return data

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __getitem__(self, key: str) -> Any:
        return self.get(key)

    def __setitem__(self, key: str, value: Any) -> None:
        self.set(key, value)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"Settings({self.as_dict()!r})"
