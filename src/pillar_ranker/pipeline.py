"""Batch orchestration of score aggregation and ranking."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Mapping, Sequence

import structlog

from pillar_ranker.core.config import EngineConfig
from pillar_ranker.core.errors import MalformedRecordError
from pillar_ranker.models import BatchResult, EntityKind, EntityScore, KindResult
from pillar_ranker.scoring import (
    aggregate_pillar_scores,
    assign_ranks,
    build_entity_score,
    pillar_payload,
)
from pillar_ranker.services.storage import PersistenceGateway

logger = structlog.get_logger()


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ScoreRankingPipeline:
    """Recompute overall scores and ranks for every entity kind.

    Runs are idempotent: scores and ranks are recomputed from ratings and
    overwritten wholesale, so repeated or overlapping runs converge.
    """

    def __init__(
        self,
        gateway: PersistenceGateway,
        config: EngineConfig | None = None,
        kinds: Sequence[EntityKind] | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            gateway: Store access, normally wrapped in a RetryingGateway.
            config: Engine configuration.
            kinds: Kinds to process. Defaults to every kind in fixed order.
        """
        self.gateway = gateway
        self.config = config or EngineConfig()
        self.kinds = tuple(kinds) if kinds is not None else tuple(EntityKind)
        self._semaphore = asyncio.Semaphore(self.config.max_concurrency)

    async def run(self) -> BatchResult:
        """Run aggregation then ranking for every kind.

        A failing kind is reported and does not stop the others.
        """
        start = time.perf_counter()
        logger.info(
            "batch_start",
            kinds=[k.value for k in self.kinds],
            concurrent_kinds=self.config.concurrent_kinds,
        )

        if self.config.concurrent_kinds:
            results = await asyncio.gather(*(self.process_kind(k) for k in self.kinds))
        else:
            results = [await self.process_kind(k) for k in self.kinds]

        batch = BatchResult(
            per_type={r.kind: r for r in results},
            total_duration_ms=_elapsed_ms(start),
            success=all(r.success for r in results),
        )
        logger.info(
            "batch_complete",
            success=batch.success,
            failed_kinds=[k.value for k in batch.failed_kinds],
            total_duration_ms=batch.total_duration_ms,
        )
        return batch

    async def process_kind(self, kind: EntityKind) -> KindResult:
        """Score and rank one kind, catching kind-level failures."""
        start = time.perf_counter()
        result = KindResult(kind=kind)
        try:
            await self._process_kind(kind, result)
        except Exception as e:
            logger.exception("kind_failed", kind=kind.value, error=str(e))
            result.success = False
            result.error = f"{type(e).__name__}: {e}"
        result.duration_ms = _elapsed_ms(start)
        if result.success:
            logger.info(
                "kind_complete",
                kind=kind.value,
                updated=result.updated_count,
                ranked=result.ranked_count,
                skipped=result.skipped_count,
                duration_ms=result.duration_ms,
            )
        return result

    async def _process_kind(self, kind: EntityKind, result: KindResult) -> None:
        rows = await self.gateway.list_ratings_for_kind(kind)
        population = await self.gateway.list_entity_ids_with_creation_order(kind)
        logger.debug("kind_loaded", kind=kind.value, ratings=len(rows), entities=len(population))

        aggregation = aggregate_pillar_scores(rows, kind=kind)
        known = {entry.entity_id for entry in population}
        orphaned = {row.entity_id for row in rows} - known
        if orphaned:
            logger.warning("orphaned_ratings", kind=kind.value, entities=sorted(orphaned))

        targets = [entry for entry in population if entry.entity_id not in aggregation.skipped]
        result.skipped_count = len(population) - len(targets)

        # 1. Scores, committed before ranking reads them
        scores = [
            build_entity_score(t.entity_id, aggregation.for_entity(t.entity_id)) for t in targets
        ]
        written = await self._write_scores(kind, scores)
        result.updated_count = len(written)
        result.skipped_count += len(scores) - len(written)

        # 2. Ranks over the freshly written scores only
        written_ids = {s.entity_id for s in written}
        ranks = assign_ranks(written, [t for t in targets if t.entity_id in written_ids])
        ranked_ids = await self._write_ranks(kind, ranks)
        result.ranked_count = sum(1 for entity_id in ranked_ids if ranks[entity_id] > 0)

    async def _write_scores(self, kind: EntityKind, scores: list[EntityScore]) -> list[EntityScore]:
        """Persist scores, returning the ones that were written."""
        if self.config.batch_writes:
            if scores:
                await self.gateway.write_entity_scores(kind, scores)
            return scores

        async def _write(score: EntityScore) -> EntityScore | None:
            async with self._semaphore:
                try:
                    await self.gateway.write_entity_score(
                        kind, score.entity_id, score.overall_score, pillar_payload(score)
                    )
                except Exception as e:
                    logger.warning(
                        "entity_score_write_failed",
                        kind=kind.value,
                        entity_id=score.entity_id,
                        error=str(e),
                    )
                    return None
            return score

        results = await asyncio.gather(*(_write(s) for s in scores))
        return [s for s in results if s is not None]

    async def _write_ranks(self, kind: EntityKind, ranks: Mapping[str, int]) -> list[str]:
        """Persist ranks, returning the entity ids that were written."""
        if self.config.batch_writes:
            if ranks:
                await self.gateway.write_entity_ranks(kind, ranks)
            return list(ranks)

        async def _write(entity_id: str, rank: int) -> str | None:
            async with self._semaphore:
                try:
                    await self.gateway.write_entity_rank(kind, entity_id, rank)
                except Exception as e:
                    logger.warning(
                        "entity_rank_write_failed",
                        kind=kind.value,
                        entity_id=entity_id,
                        error=str(e),
                    )
                    return None
            return entity_id

        results = await asyncio.gather(*(_write(eid, rank) for eid, rank in ranks.items()))
        return [eid for eid in results if eid is not None]

    async def update_entity(self, kind: EntityKind, entity_id: str) -> EntityScore:
        """Recompute one entity's pillar rollup and overall score.

        Ranks are left alone until the next full batch.

        Raises:
            MalformedRecordError: If the entity's ratings are out of range.
            EntityNotFoundError: If the entity does not exist.
        """
        rows = await self.gateway.list_ratings_for_kind(kind, entity_id=entity_id)
        aggregation = aggregate_pillar_scores(rows, entity_id=entity_id, kind=kind)
        if entity_id in aggregation.skipped:
            raise MalformedRecordError(entity_id, aggregation.skipped[entity_id], kind.value)

        score = build_entity_score(entity_id, aggregation.for_entity(entity_id))
        await self.gateway.write_entity_score(
            kind, entity_id, score.overall_score, pillar_payload(score)
        )
        logger.info(
            "entity_updated",
            kind=kind.value,
            entity_id=entity_id,
            score=score.overall_score,
            pillars=len(score.pillar_scores),
        )
        return score
