"""Rated entity tables: series, characters, seasons and episodes."""

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlmodel import JSON, Field, SQLModel

from pillar_ranker.models.kind import EntityKind


class EntityBase(SQLModel):
    """Columns shared by every rated entity.

    ``score``, ``ranking`` and ``pillar_scores`` are written only by the
    batch engine and are replaced wholesale on every run.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    slug: str = Field(index=True, unique=True)
    name: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC), index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    score: float = 0.0
    ranking: int = Field(default=0, index=True)
    pillar_scores: dict[str, Any] | None = Field(default=None, sa_type=JSON)


class Series(EntityBase, table=True):
    """A TV series."""


class Character(EntityBase, table=True):
    """A character appearing in a series."""

    series_id: str | None = Field(default=None, index=True)


class Season(EntityBase, table=True):
    """One season of a series."""

    series_id: str | None = Field(default=None, index=True)
    number: int | None = None


class Episode(EntityBase, table=True):
    """One episode of a season."""

    season_id: str | None = Field(default=None, index=True)
    number: int | None = None


ENTITY_TABLES: dict[EntityKind, type[EntityBase]] = {
    EntityKind.SERIES: Series,
    EntityKind.CHARACTER: Character,
    EntityKind.SEASON: Season,
    EntityKind.EPISODE: Episode,
}


def entity_table(kind: EntityKind) -> type[EntityBase]:
    """Get the table model storing entities of ``kind``."""
    return ENTITY_TABLES[EntityKind(kind)]
