"""Roll user pillar ratings up into per-entity pillar scores."""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from statistics import fmean

import structlog

from pillar_ranker.core.errors import MalformedRecordError
from pillar_ranker.models import EntityKind, PillarScore, RatingRow

logger = structlog.get_logger()

MIN_VALUE = 0.0
MAX_VALUE = 10.0


@dataclass
class AggregationResult:
    """Pillar rollups for one kind.

    Attributes:
        pillar_scores: Entity id -> (pillar id -> rollup). Entities without
            ratings are absent.
        skipped: Entity id -> reason, for entities with malformed rows.
    """

    pillar_scores: dict[str, dict[str, PillarScore]] = field(default_factory=dict)
    skipped: dict[str, str] = field(default_factory=dict)

    def for_entity(self, entity_id: str) -> dict[str, PillarScore]:
        return self.pillar_scores.get(entity_id, {})


def _in_range(value: float) -> bool:
    return not math.isnan(value) and MIN_VALUE <= value <= MAX_VALUE


def validate_row(row: RatingRow, kind: EntityKind | None = None) -> None:
    """Raise MalformedRecordError if a rating row is out of range."""
    kind_name = kind.value if kind else None
    if not _in_range(row.pillar_weight):
        raise MalformedRecordError(
            row.entity_id,
            f"pillar {row.pillar_id} weight {row.pillar_weight} outside [0, 10]",
            kind_name,
        )
    if not _in_range(row.score):
        raise MalformedRecordError(
            row.entity_id,
            f"pillar {row.pillar_id} score {row.score} outside [0, 10]",
            kind_name,
        )


def _summarize(rows: list[RatingRow]) -> PillarScore:
    first = rows[0]
    return PillarScore(
        pillar_id=first.pillar_id,
        pillar_type=first.pillar_type,
        pillar_weight=first.pillar_weight,
        avg_score=fmean(r.score for r in rows),
        rater_count=len(rows),
    )


def aggregate_pillar_scores(
    rows: Iterable[RatingRow],
    entity_id: str | None = None,
    kind: EntityKind | None = None,
) -> AggregationResult:
    """Compute mean score and rater count per (entity, pillar).

    Pairs without ratings are omitted rather than zero-filled. A malformed
    row marks its whole entity as skipped; other entities are unaffected.

    Args:
        rows: Rating rows of a single kind.
        entity_id: Only aggregate this entity (incremental mode).
        kind: Kind of the rows, used in log events and errors.

    Returns:
        AggregationResult with rollups and skipped entities.
    """
    grouped: dict[str, dict[str, list[RatingRow]]] = defaultdict(lambda: defaultdict(list))
    result = AggregationResult()

    for row in rows:
        if entity_id is not None and row.entity_id != entity_id:
            continue
        if row.entity_id in result.skipped:
            continue
        try:
            validate_row(row, kind)
        except MalformedRecordError as e:
            logger.warning(
                "entity_skipped",
                kind=kind.value if kind else None,
                entity_id=row.entity_id,
                reason=e.reason,
            )
            result.skipped[row.entity_id] = e.reason
            grouped.pop(row.entity_id, None)
            continue
        grouped[row.entity_id][row.pillar_id].append(row)

    for eid, pillars in grouped.items():
        result.pillar_scores[eid] = {pid: _summarize(group) for pid, group in pillars.items()}

    return result
