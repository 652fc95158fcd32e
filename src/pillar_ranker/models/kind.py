"""Entity kinds processed by the scoring engine."""

from __future__ import annotations

from enum import Enum


class EntityKind(str, Enum):
    """Media kind a pillar template and its ratings belong to.

    Declaration order is the fixed batch processing order.
    """

    SERIES = "SERIES"
    CHARACTER = "CHARACTER"
    SEASON = "SEASON"
    EPISODE = "EPISODE"

    @property
    def plural(self) -> str:
        return _PLURALS[self]

    @classmethod
    def parse(cls, value: str) -> EntityKind:
        """Parse a kind from its name, plural or URL form (e.g. "tv-series")."""
        normalized = value.strip().upper().replace("-", "_")
        normalized = _ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            msg = f"Unknown entity kind: {value!r}"
            raise ValueError(msg) from None


_PLURALS = {
    EntityKind.SERIES: "series",
    EntityKind.CHARACTER: "characters",
    EntityKind.SEASON: "seasons",
    EntityKind.EPISODE: "episodes",
}

_ALIASES = {
    "TV_SERIES": "SERIES",
    "CHARACTERS": "CHARACTER",
    "SEASONS": "SEASON",
    "EPISODES": "EPISODE",
}
