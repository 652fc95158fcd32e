"""SQLModel implementation of the persistence gateway."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Mapping, Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, TypeVar

import structlog
from sqlalchemy.engine import make_url
from sqlalchemy.pool import NullPool, QueuePool
from sqlmodel import Session, SQLModel, col, create_engine, select

from pillar_ranker.core.errors import EntityNotFoundError
from pillar_ranker.models import (
    EntityBase,
    EntityKind,
    EntityOrder,
    EntityScore,
    EntityScoreView,
    PillarTemplate,
    RatingRow,
    UserPillarRating,
    entity_table,
)
from pillar_ranker.scoring.overall import pillar_payload

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = structlog.get_logger()

T = TypeVar("T")


def create_store_engine(database_url: str, create_tables: bool = True) -> Engine:
    """Create an engine for the durable store.

    Args:
        database_url: SQLAlchemy URL (DuckDB, SQLite, PostgreSQL, ...).
        create_tables: Create missing tables on first use.
    """
    url = make_url(database_url)
    if url.get_backend_name() == "duckdb":
        # DuckDB holds one handle per file: share a single pooled connection
        engine = create_engine(url, poolclass=QueuePool, pool_size=1, max_overflow=0)
    else:
        # NullPool: every worker-thread session opens its own connection
        engine = create_engine(url, poolclass=NullPool)
    if create_tables:
        SQLModel.metadata.create_all(engine)
    logger.info("store_engine_created", url=engine.url.render_as_string(hide_password=True))
    return engine


def _to_view(entity: EntityBase) -> EntityScoreView:
    return EntityScoreView(
        entity_id=entity.id,
        slug=entity.slug,
        name=entity.name,
        overall_score=entity.score,
        rank=entity.ranking,
        pillar_scores=dict(entity.pillar_scores or {}),
    )


class SQLGateway:
    """Read ratings and write scores and ranks through SQLModel sessions.

    Each call runs a sync session on a worker thread.
    """

    def __init__(self, engine: Engine) -> None:
        self._engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    async def _run_session(self, fn: Callable[[Session], T]) -> T:
        def _run() -> T:
            with Session(self._engine) as session:
                return fn(session)

        return await asyncio.to_thread(_run)

    @classmethod
    def from_url(cls, database_url: str) -> SQLGateway:
        """Open a gateway on a new engine, creating tables if needed."""
        return cls(create_store_engine(database_url))

    async def list_ratings_for_kind(
        self, kind: EntityKind, entity_id: str | None = None
    ) -> list[RatingRow]:
        """List every finalized pillar rating of a kind with its pillar weight."""
        kind_value = EntityKind(kind).value

        def _get(session: Session) -> list[RatingRow]:
            statement = (
                select(UserPillarRating, PillarTemplate)
                .join(PillarTemplate, col(UserPillarRating.pillar_id) == col(PillarTemplate.id))
                .where(UserPillarRating.entity_kind == kind_value)
            )
            if entity_id is not None:
                statement = statement.where(UserPillarRating.entity_id == entity_id)
            return [
                RatingRow(
                    entity_id=rating.entity_id,
                    pillar_id=pillar.id,
                    pillar_type=pillar.type,
                    pillar_weight=pillar.weight,
                    score=rating.final_score,
                )
                for rating, pillar in session.exec(statement).all()
            ]

        return await self._run_session(_get)

    async def list_entity_ids_with_creation_order(self, kind: EntityKind) -> list[EntityOrder]:
        """List all entities of a kind, oldest first."""
        table = entity_table(kind)

        def _get(session: Session) -> list[EntityOrder]:
            statement = select(table.id, table.created_at).order_by(
                col(table.created_at), col(table.id)
            )
            return [
                EntityOrder(entity_id=entity_id, created_at=created_at)
                for entity_id, created_at in session.exec(statement).all()
            ]

        return await self._run_session(_get)

    def _load(self, session: Session, kind: EntityKind, entity_id: str) -> EntityBase:
        entity = session.get(entity_table(kind), entity_id)
        if entity is None:
            raise EntityNotFoundError(EntityKind(kind).value, entity_id)
        return entity

    async def write_entity_score(
        self,
        kind: EntityKind,
        entity_id: str,
        score: float,
        pillar_scores: dict[str, Any] | None = None,
    ) -> None:
        """Replace an entity's overall score and pillar rollup."""

        def _save(session: Session) -> None:
            entity = self._load(session, kind, entity_id)
            entity.score = score
            entity.pillar_scores = pillar_scores
            entity.updated_at = datetime.now(UTC)
            session.add(entity)
            session.commit()

        await self._run_session(_save)

    async def write_entity_rank(self, kind: EntityKind, entity_id: str, rank: int) -> None:
        """Replace an entity's rank."""

        def _save(session: Session) -> None:
            entity = self._load(session, kind, entity_id)
            entity.ranking = rank
            session.add(entity)
            session.commit()

        await self._run_session(_save)

    async def write_entity_scores(self, kind: EntityKind, scores: Sequence[EntityScore]) -> None:
        """Replace the scores of many entities in one transaction."""

        def _save(session: Session) -> None:
            now = datetime.now(UTC)
            for score in scores:
                entity = self._load(session, kind, score.entity_id)
                entity.score = score.overall_score
                entity.pillar_scores = pillar_payload(score)
                entity.updated_at = now
                session.add(entity)
            session.commit()

        await self._run_session(_save)

    async def write_entity_ranks(self, kind: EntityKind, ranks: Mapping[str, int]) -> None:
        """Replace the ranks of many entities in one transaction."""

        def _save(session: Session) -> None:
            for entity_id, rank in ranks.items():
                entity = self._load(session, kind, entity_id)
                entity.ranking = rank
                session.add(entity)
            session.commit()

        await self._run_session(_save)

    async def get_entity_scores(self, kind: EntityKind, entity_id: str) -> EntityScoreView:
        """Read back an entity's persisted score state."""

        def _get(session: Session) -> EntityScoreView:
            return _to_view(self._load(session, kind, entity_id))

        return await self._run_session(_get)

    async def get_leaderboard(self, kind: EntityKind, limit: int = 10) -> list[EntityScoreView]:
        """Get the top ranked entities of a kind, rank 1 first."""
        table = entity_table(kind)

        def _get(session: Session) -> list[EntityScoreView]:
            statement = (
                select(table)
                .where(table.ranking > 0)
                .order_by(col(table.ranking))
                .limit(limit)
            )
            return [_to_view(entity) for entity in session.exec(statement).all()]

        return await self._run_session(_get)

    async def close(self) -> None:
        """Dispose of the engine's connections."""
        self._engine.dispose()
