"""In-memory persistence gateway for dry runs and tests."""

from __future__ import annotations

import copy
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

from pillar_ranker.core.errors import EntityNotFoundError
from pillar_ranker.models import (
    EntityKind,
    EntityOrder,
    EntityScore,
    EntityScoreView,
    RatingRow,
)
from pillar_ranker.scoring.overall import pillar_payload

_EPOCH = datetime(2024, 1, 1, tzinfo=UTC)


@dataclass
class StoredEntity:
    """Entity state held by the in-memory store."""

    id: str
    slug: str
    name: str
    created_at: datetime
    score: float = 0.0
    ranking: int = 0
    pillar_scores: dict[str, Any] | None = None


@dataclass
class StoredPillar:
    id: str
    type: str
    kind: EntityKind
    weight: float = 1.0


@dataclass
class _Fault:
    operation: str
    error: BaseException
    kind: EntityKind | None = None
    entity_id: str | None = None
    remaining: int | None = None  # None = every call


@dataclass
class InMemoryGateway:
    """Dict-backed gateway implementing the PersistenceGateway protocol.

    Faults can be injected per operation (optionally per kind or entity)
    to exercise retry and isolation behavior.
    """

    entities: dict[EntityKind, dict[str, StoredEntity]] = field(
        default_factory=lambda: {kind: {} for kind in EntityKind}
    )
    pillars: dict[str, StoredPillar] = field(default_factory=dict)
    ratings: dict[tuple[str, EntityKind, str, str], float] = field(default_factory=dict)
    calls: list[tuple[str, EntityKind, str | None]] = field(default_factory=list)
    _faults: list[_Fault] = field(default_factory=list)

    # ==================== Seeding ====================

    def add_entity(
        self,
        kind: EntityKind,
        entity_id: str,
        created_at: datetime | None = None,
        name: str | None = None,
    ) -> StoredEntity:
        """Add an entity. Without ``created_at`` entities get increasing timestamps."""
        bucket = self.entities[kind]
        if created_at is None:
            created_at = _EPOCH + timedelta(minutes=sum(len(b) for b in self.entities.values()))
        entity = StoredEntity(
            id=entity_id,
            slug=entity_id.lower().replace(" ", "-"),
            name=name or entity_id,
            created_at=created_at,
        )
        bucket[entity_id] = entity
        return entity

    def add_pillar(
        self, pillar_id: str, kind: EntityKind, weight: float = 1.0, pillar_type: str | None = None
    ) -> StoredPillar:
        pillar = StoredPillar(id=pillar_id, type=pillar_type or pillar_id, kind=kind, weight=weight)
        self.pillars[pillar_id] = pillar
        return pillar

    def rate(
        self, user_id: str, kind: EntityKind, entity_id: str, pillar_id: str, score: float
    ) -> None:
        """Insert or replace a user's finalized pillar score."""
        self.ratings[(user_id, kind, entity_id, pillar_id)] = score

    def inject_fault(
        self,
        operation: str,
        error: BaseException,
        *,
        kind: EntityKind | None = None,
        entity_id: str | None = None,
        times: int | None = None,
    ) -> None:
        """Make matching calls raise ``error``, ``times`` times or forever."""
        self._faults.append(_Fault(operation, error, kind, entity_id, times))

    def _record(self, operation: str, kind: EntityKind, entity_id: str | None = None) -> None:
        self.calls.append((operation, kind, entity_id))
        for fault in self._faults:
            if fault.operation != operation or fault.remaining == 0:
                continue
            if fault.kind is not None and fault.kind != kind:
                continue
            if fault.entity_id is not None and fault.entity_id != entity_id:
                continue
            if fault.remaining is not None:
                fault.remaining -= 1
            raise fault.error

    def call_count(self, operation: str) -> int:
        return sum(1 for name, _, _ in self.calls if name == operation)

    def _get(self, kind: EntityKind, entity_id: str) -> StoredEntity:
        try:
            return self.entities[kind][entity_id]
        except KeyError:
            raise EntityNotFoundError(kind.value, entity_id) from None

    # ==================== Gateway protocol ====================

    async def list_ratings_for_kind(
        self, kind: EntityKind, entity_id: str | None = None
    ) -> list[RatingRow]:
        self._record("list_ratings_for_kind", kind, entity_id)
        rows = []
        for (_, rated_kind, rated_id, pillar_id), score in self.ratings.items():
            if rated_kind != kind or (entity_id is not None and rated_id != entity_id):
                continue
            pillar = self.pillars[pillar_id]
            rows.append(
                RatingRow(
                    entity_id=rated_id,
                    pillar_id=pillar_id,
                    pillar_type=pillar.type,
                    pillar_weight=pillar.weight,
                    score=score,
                )
            )
        return rows

    async def list_entity_ids_with_creation_order(self, kind: EntityKind) -> list[EntityOrder]:
        self._record("list_entity_ids_with_creation_order", kind)
        entries = [EntityOrder(e.id, e.created_at) for e in self.entities[kind].values()]
        return sorted(entries, key=lambda e: (e.created_at, e.entity_id))

    async def write_entity_score(
        self,
        kind: EntityKind,
        entity_id: str,
        score: float,
        pillar_scores: dict[str, Any] | None = None,
    ) -> None:
        self._record("write_entity_score", kind, entity_id)
        entity = self._get(kind, entity_id)
        entity.score = score
        entity.pillar_scores = copy.deepcopy(pillar_scores)

    async def write_entity_rank(self, kind: EntityKind, entity_id: str, rank: int) -> None:
        self._record("write_entity_rank", kind, entity_id)
        self._get(kind, entity_id).ranking = rank

    async def write_entity_scores(self, kind: EntityKind, scores: Sequence[EntityScore]) -> None:
        self._record("write_entity_scores", kind)
        targets = [(self._get(kind, s.entity_id), s) for s in scores]
        for entity, score in targets:
            entity.score = score.overall_score
            entity.pillar_scores = pillar_payload(score)

    async def write_entity_ranks(self, kind: EntityKind, ranks: Mapping[str, int]) -> None:
        self._record("write_entity_ranks", kind)
        targets = [(self._get(kind, entity_id), rank) for entity_id, rank in ranks.items()]
        for entity, rank in targets:
            entity.ranking = rank

    async def get_entity_scores(self, kind: EntityKind, entity_id: str) -> EntityScoreView:
        self._record("get_entity_scores", kind, entity_id)
        return self._view(self._get(kind, entity_id))

    async def get_leaderboard(self, kind: EntityKind, limit: int = 10) -> list[EntityScoreView]:
        self._record("get_leaderboard", kind)
        ranked = sorted(
            (e for e in self.entities[kind].values() if e.ranking > 0),
            key=lambda e: e.ranking,
        )
        return [self._view(e) for e in ranked[:limit]]

    async def close(self) -> None:
        """Nothing to release."""

    @staticmethod
    def _view(entity: StoredEntity) -> EntityScoreView:
        return EntityScoreView(
            entity_id=entity.id,
            slug=entity.slug,
            name=entity.name,
            overall_score=entity.score,
            rank=entity.ranking,
            pillar_scores=copy.deepcopy(entity.pillar_scores or {}),
        )

    def snapshot(self, kind: EntityKind) -> dict[str, tuple[float, int]]:
        """Entity id -> (score, rank) for one kind."""
        return {e.id: (e.score, e.ranking) for e in self.entities[kind].values()}
