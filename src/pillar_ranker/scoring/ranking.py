"""Dense rank assignment over one kind's freshly computed scores."""

from __future__ import annotations

from collections.abc import Iterable

from pillar_ranker.models import EntityOrder, EntityScore

UNRANKED = 0


def assign_ranks(
    scores: Iterable[EntityScore],
    population: Iterable[EntityOrder],
) -> dict[str, int]:
    """Assign 1-based dense ranks to rated entities.

    Rated entities are ordered by overall score descending, then creation
    time ascending, then id ascending, so every rank is unique. Entities of
    the population without ratings get rank 0.

    Args:
        scores: Scores computed this run.
        population: Entities of the kind with creation timestamps.
            Scores for ids outside the population are ignored.

    Returns:
        Entity id -> rank for the whole population.
    """
    created_at = {entry.entity_id: entry.created_at for entry in population}
    ranks = dict.fromkeys(created_at, UNRANKED)

    ranked = [s for s in scores if s.entity_id in created_at and s.is_ranked]
    ranked.sort(key=lambda s: (-s.overall_score, created_at[s.entity_id], s.entity_id))

    for index, score in enumerate(ranked):
        ranks[score.entity_id] = index + 1

    return ranks
