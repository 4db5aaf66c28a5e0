"""Common type definitions for into-md."""

from __future__ import annotations

from enum import Enum


class FetchMode(Enum):
    """Requested fetch mode.

    AUTO tries a plain request first and renders only when detection says so.
    STATIC and RENDER force one mechanism (``--no-js`` / ``--js``).
    """

    AUTO = "auto"
    STATIC = "static"
    RENDER = "render"


class Strategy(Enum):
    """Mechanism that actually produced a result. Exactly two variants."""

    STATIC = "static"
    RENDER = "render"

    @classmethod
    def parse(cls, value: object) -> Strategy | None:
        """Parse a persisted strategy tag, returning None when unrecognized."""
        if not isinstance(value, str):
            return None
        try:
            return cls(value)
        except ValueError:
            return None


# Forced modes map onto exactly one strategy; AUTO may end with either
MODE_STRATEGY: dict[FetchMode, Strategy] = {
    FetchMode.STATIC: Strategy.STATIC,
    FetchMode.RENDER: Strategy.RENDER,
}
