"""Scoring steps: pillar aggregation, overall score and ranking.

Every function here is pure; persistence is left to the pipeline.
"""

from pillar_ranker.scoring.aggregation import (
    AggregationResult,
    aggregate_pillar_scores,
    validate_row,
)
from pillar_ranker.scoring.overall import (
    build_entity_score,
    calculate_overall_score,
    pillar_payload,
    round2,
)
from pillar_ranker.scoring.ranking import UNRANKED, assign_ranks

__all__ = [
    "UNRANKED",
    "AggregationResult",
    "aggregate_pillar_scores",
    "assign_ranks",
    "build_entity_score",
    "calculate_overall_score",
    "pillar_payload",
    "round2",
    "validate_row",
]
