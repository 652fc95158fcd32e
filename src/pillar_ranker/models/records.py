"""Typed records exchanged between the store and the scoring steps."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class RatingRow:
    """One user's finalized score for one pillar of one entity.

    Attributes:
        entity_id: Rated entity.
        pillar_id: Pillar template the score belongs to.
        pillar_type: Pillar name (e.g. "writing").
        pillar_weight: Template weight at read time.
        score: Finalized 0-10 score.
    """

    entity_id: str
    pillar_id: str
    pillar_type: str
    pillar_weight: float
    score: float


@dataclass(frozen=True)
class EntityOrder:
    """An entity id with its creation timestamp, used for tie-breaking."""

    entity_id: str
    created_at: datetime


@dataclass(frozen=True)
class PillarScore:
    """Mean score and rater count of one pillar for one entity."""

    pillar_id: str
    pillar_type: str
    pillar_weight: float
    avg_score: float
    rater_count: int

    def to_dict(self, avg_score: float | None = None) -> dict[str, Any]:
        return {
            "pillar_id": self.pillar_id,
            "pillar_type": self.pillar_type,
            "pillar_weight": self.pillar_weight,
            "avg_score": self.avg_score if avg_score is None else avg_score,
            "rater_count": self.rater_count,
        }


@dataclass(frozen=True)
class EntityScore:
    """Freshly computed overall score of one entity.

    Attributes:
        entity_id: Scored entity.
        overall_score: Weighted pillar mean, 0-10, 2 decimals.
        pillar_scores: Pillar id -> pillar rollup. Empty when unrated.
    """

    entity_id: str
    overall_score: float
    pillar_scores: dict[str, PillarScore] = field(default_factory=dict)

    @property
    def rater_count(self) -> int:
        return sum(p.rater_count for p in self.pillar_scores.values())

    @property
    def is_ranked(self) -> bool:
        return self.overall_score > 0 or self.rater_count > 0


@dataclass(frozen=True)
class EntityScoreView:
    """Persisted score state of an entity, as read back for display."""

    entity_id: str
    slug: str
    name: str
    overall_score: float
    rank: int
    pillar_scores: dict[str, Any] = field(default_factory=dict)
