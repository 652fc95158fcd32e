"""Persistence gateway protocol and its retrying wrapper."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

from pillar_ranker.core.config import RetryConfig
from pillar_ranker.models import (
    EntityKind,
    EntityOrder,
    EntityScore,
    EntityScoreView,
    RatingRow,
)
from pillar_ranker.services.retry import with_retry

T = TypeVar("T")


@runtime_checkable
class PersistenceGateway(Protocol):
    """Typed read/write contract against the durable store.

    Writes replace ``score``, ``pillar_scores`` and ``ranking`` wholesale;
    there are no increment-style mutations.
    """

    async def list_ratings_for_kind(
        self, kind: EntityKind, entity_id: str | None = None
    ) -> list[RatingRow]:
        """List every finalized pillar rating of a kind.

        Args:
            kind: Entity kind to read.
            entity_id: Restrict to one entity (incremental mode).

        Returns:
            One row per (user, entity, pillar) with the pillar's weight.
        """
        ...

    async def list_entity_ids_with_creation_order(self, kind: EntityKind) -> list[EntityOrder]:
        """List all entities of a kind with their creation timestamps."""
        ...

    async def write_entity_score(
        self,
        kind: EntityKind,
        entity_id: str,
        score: float,
        pillar_scores: dict[str, Any] | None = None,
    ) -> None:
        """Replace an entity's overall score and pillar rollup."""
        ...

    async def write_entity_rank(self, kind: EntityKind, entity_id: str, rank: int) -> None:
        """Replace an entity's rank (0 = unranked)."""
        ...

    async def write_entity_scores(self, kind: EntityKind, scores: Sequence[EntityScore]) -> None:
        """Bulk variant of write_entity_score, committed together."""
        ...

    async def write_entity_ranks(self, kind: EntityKind, ranks: Mapping[str, int]) -> None:
        """Bulk variant of write_entity_rank, committed together."""
        ...

    async def get_entity_scores(self, kind: EntityKind, entity_id: str) -> EntityScoreView:
        """Read back an entity's persisted score, rank and pillar rollup."""
        ...

    async def get_leaderboard(self, kind: EntityKind, limit: int = 10) -> list[EntityScoreView]:
        """Read the top ranked entities of a kind, best first."""
        ...

    async def close(self) -> None:
        """Release store resources."""
        ...


class RetryingGateway:
    """Gateway wrapper that runs every call through the retry policy."""

    def __init__(
        self,
        inner: PersistenceGateway,
        retry: RetryConfig | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the wrapper.

        Args:
            inner: Gateway performing the actual store calls.
            retry: Backoff settings. Defaults to RetryConfig().
            sleep: Awaitable sleep used between attempts.
        """
        self.inner = inner
        self.retry = retry or RetryConfig()
        self._sleep = sleep

    async def _call(self, description: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await with_retry(
            operation,
            self.retry.max_retries,
            base_delay=self.retry.base_delay_seconds,
            jitter_ratio=self.retry.jitter_ratio,
            sleep=self._sleep,
            description=description,
        )

    async def list_ratings_for_kind(
        self, kind: EntityKind, entity_id: str | None = None
    ) -> list[RatingRow]:
        return await self._call(
            "list_ratings_for_kind",
            lambda: self.inner.list_ratings_for_kind(kind, entity_id),
        )

    async def list_entity_ids_with_creation_order(self, kind: EntityKind) -> list[EntityOrder]:
        return await self._call(
            "list_entity_ids_with_creation_order",
            lambda: self.inner.list_entity_ids_with_creation_order(kind),
        )

    async def write_entity_score(
        self,
        kind: EntityKind,
        entity_id: str,
        score: float,
        pillar_scores: dict[str, Any] | None = None,
    ) -> None:
        await self._call(
            "write_entity_score",
            lambda: self.inner.write_entity_score(kind, entity_id, score, pillar_scores),
        )

    async def write_entity_rank(self, kind: EntityKind, entity_id: str, rank: int) -> None:
        await self._call(
            "write_entity_rank",
            lambda: self.inner.write_entity_rank(kind, entity_id, rank),
        )

    async def write_entity_scores(self, kind: EntityKind, scores: Sequence[EntityScore]) -> None:
        await self._call(
            "write_entity_scores",
            lambda: self.inner.write_entity_scores(kind, scores),
        )

    async def write_entity_ranks(self, kind: EntityKind, ranks: Mapping[str, int]) -> None:
        await self._call(
            "write_entity_ranks",
            lambda: self.inner.write_entity_ranks(kind, ranks),
        )

    async def get_entity_scores(self, kind: EntityKind, entity_id: str) -> EntityScoreView:
        return await self._call(
            "get_entity_scores",
            lambda: self.inner.get_entity_scores(kind, entity_id),
        )

    async def get_leaderboard(self, kind: EntityKind, limit: int = 10) -> list[EntityScoreView]:
        return await self._call(
            "get_leaderboard",
            lambda: self.inner.get_leaderboard(kind, limit),
        )

    async def close(self) -> None:
        await self.inner.close()
