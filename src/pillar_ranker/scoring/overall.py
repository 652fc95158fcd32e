"""Overall score from weighted pillar averages."""

from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from math import fsum
from typing import Any

from pillar_ranker.models import EntityScore, PillarScore

TWO_PLACES = Decimal("0.01")


def round2(value: float) -> float:
    """Round half-up to 2 decimals on the exact binary value.

    Matches JavaScript ``Number.prototype.toFixed(2)`` for non-negative
    values, so stored and displayed scores agree (``round2(1.005) == 1.0``,
    ``round2(0.125) == 0.13``).
    """
    return float(Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP))


def calculate_overall_score(pillar_scores: Mapping[str, PillarScore]) -> float:
    """Calculate an entity's overall score from its pillar rollup.

    Formula: round2(Σ(avg_score × weight) / Σ(weight)) over rated pillars.
    Pillars without raters are left out of both sums.

    Args:
        pillar_scores: Pillar id -> pillar rollup for one entity.

    Returns:
        Score in [0, 10], or 0.0 when nothing is rated or every weight is 0.
    """
    present = [p for p in pillar_scores.values() if p.rater_count > 0]
    total_weight = fsum(p.pillar_weight for p in present)
    if total_weight == 0:
        return 0.0

    weighted_sum = fsum(p.avg_score * p.pillar_weight for p in present)
    return round2(weighted_sum / total_weight)


def build_entity_score(entity_id: str, pillar_scores: Mapping[str, PillarScore]) -> EntityScore:
    """Bundle an entity's pillar rollup with its overall score."""
    return EntityScore(
        entity_id=entity_id,
        overall_score=calculate_overall_score(pillar_scores),
        pillar_scores=dict(pillar_scores),
    )


def pillar_payload(score: EntityScore) -> dict[str, Any] | None:
    """Serialize an entity's pillar rollup keyed by pillar type.

    Averages are stored rounded to 2 decimals for display. Unrated
    entities serialize to None.
    """
    if not score.pillar_scores:
        return None
    return {
        pillar.pillar_type: pillar.to_dict(avg_score=round2(pillar.avg_score))
        for pillar in score.pillar_scores.values()
    }
