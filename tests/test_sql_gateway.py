"""Tests for the SQLModel gateway against a temporary SQLite store."""

from datetime import UTC, datetime, timedelta

import pytest
from sqlmodel import Session

from pillar_ranker.core.config import EngineConfig
from pillar_ranker.core.errors import EntityNotFoundError
from pillar_ranker.models import (
    Character,
    EntityKind,
    PillarTemplate,
    Series,
    UserPillarRating,
)
from pillar_ranker.scoring import build_entity_score, pillar_payload
from pillar_ranker.services.storage import SQLGateway, create_store_engine
from pillar_ranker.trigger import run_score_and_ranking_batch

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite:///{tmp_path / 'store.db'}"


@pytest.fixture
def seeded_url(database_url):
    """Store with three series, one character and their ratings."""
    engine = create_store_engine(database_url)
    with Session(engine) as session:
        session.add(PillarTemplate(id="writing", type="writing", media_type="SERIES", weight=2.0))
        session.add(PillarTemplate(id="acting", type="acting", media_type="SERIES", weight=1.0))
        session.add(PillarTemplate(id="depth", type="depth", media_type="CHARACTER", weight=1.0))
        session.add(Series(id="s1", slug="first", name="First", created_at=T0))
        session.add(Series(id="s2", slug="second", name="Second", created_at=T0 + timedelta(1)))
        session.add(Series(id="s3", slug="third", name="Third", created_at=T0 + timedelta(2)))
        session.add(Character(id="c1", slug="walter", name="Walter", created_at=T0))
        session.add_all(
            [
                UserPillarRating(
                    user_id="u1", entity_kind="SERIES", entity_id="s1", pillar_id="writing",
                    final_score=9.0,
                ),
                UserPillarRating(
                    user_id="u1", entity_kind="SERIES", entity_id="s2", pillar_id="writing",
                    final_score=9.0,
                ),
                UserPillarRating(
                    user_id="u2", entity_kind="SERIES", entity_id="s2", pillar_id="acting",
                    final_score=9.0,
                ),
                UserPillarRating(
                    user_id="u1", entity_kind="CHARACTER", entity_id="c1", pillar_id="depth",
                    final_score=6.5,
                ),
            ]
        )
        session.commit()
    engine.dispose()
    return database_url


@pytest.fixture
async def gateway(seeded_url):
    store = SQLGateway.from_url(seeded_url)
    yield store
    await store.close()


class TestSQLGatewayReads:
    """Tests for gateway listing operations."""

    async def test_list_ratings_for_kind(self, gateway):
        rows = await gateway.list_ratings_for_kind(EntityKind.SERIES)

        assert len(rows) == 3
        by_pillar = {(r.entity_id, r.pillar_id): r for r in rows}
        assert by_pillar[("s2", "acting")].pillar_weight == 1.0
        assert by_pillar[("s1", "writing")].pillar_type == "writing"
        assert by_pillar[("s1", "writing")].score == 9.0

    async def test_list_ratings_for_one_entity(self, gateway):
        rows = await gateway.list_ratings_for_kind(EntityKind.SERIES, entity_id="s2")
        assert {r.pillar_id for r in rows} == {"writing", "acting"}

    async def test_kinds_are_separate(self, gateway):
        rows = await gateway.list_ratings_for_kind(EntityKind.CHARACTER)
        assert [(r.entity_id, r.score) for r in rows] == [("c1", 6.5)]
        assert await gateway.list_ratings_for_kind(EntityKind.EPISODE) == []

    async def test_creation_order(self, gateway):
        entries = await gateway.list_entity_ids_with_creation_order(EntityKind.SERIES)
        assert [e.entity_id for e in entries] == ["s1", "s2", "s3"]
        assert entries[0].created_at < entries[1].created_at


class TestSQLGatewayWrites:
    """Tests for gateway write operations."""

    async def test_write_score_and_rank(self, gateway):
        payload = {"writing": {"avg_score": 9.0, "rater_count": 1}}
        await gateway.write_entity_score(EntityKind.SERIES, "s1", 9.0, payload)
        await gateway.write_entity_rank(EntityKind.SERIES, "s1", 2)

        view = await gateway.get_entity_scores(EntityKind.SERIES, "s1")
        assert view.overall_score == 9.0
        assert view.rank == 2
        assert view.pillar_scores == payload
        assert view.slug == "first"

    async def test_write_overwrites_wholesale(self, gateway):
        await gateway.write_entity_score(EntityKind.SERIES, "s1", 9.0, {"writing": {}})
        await gateway.write_entity_score(EntityKind.SERIES, "s1", 0.0, None)

        view = await gateway.get_entity_scores(EntityKind.SERIES, "s1")
        assert view.overall_score == 0.0
        assert view.pillar_scores == {}

    async def test_missing_entity(self, gateway):
        with pytest.raises(EntityNotFoundError):
            await gateway.write_entity_rank(EntityKind.SEASON, "nope", 1)

    async def test_bulk_writes(self, gateway):
        scores = [build_entity_score("s1", {}), build_entity_score("s3", {})]
        await gateway.write_entity_scores(EntityKind.SERIES, scores)
        await gateway.write_entity_ranks(EntityKind.SERIES, {"s1": 1, "s3": 0})

        first = await gateway.get_entity_scores(EntityKind.SERIES, "s1")
        assert first.rank == 1
        assert first.pillar_scores == {}
        assert pillar_payload(scores[0]) is None

    async def test_bulk_write_is_atomic(self, gateway):
        """A missing entity aborts the whole bulk write."""
        await gateway.write_entity_rank(EntityKind.SERIES, "s1", 5)

        with pytest.raises(EntityNotFoundError):
            await gateway.write_entity_ranks(EntityKind.SERIES, {"s1": 1, "ghost": 2})

        assert (await gateway.get_entity_scores(EntityKind.SERIES, "s1")).rank == 5


class TestSQLBatch:
    """End-to-end batch runs against SQLite."""

    @pytest.mark.parametrize("batch_writes", [False, True])
    async def test_full_batch(self, seeded_url, batch_writes):
        config = EngineConfig(database_url=seeded_url, batch_writes=batch_writes)

        result = await run_score_and_ranking_batch(config)

        assert result.success
        assert result.per_type[EntityKind.SERIES].updated_count == 3
        assert result.per_type[EntityKind.SERIES].ranked_count == 2
        assert result.per_type[EntityKind.EPISODE].updated_count == 0

        store = SQLGateway.from_url(seeded_url)
        try:
            board = await store.get_leaderboard(EntityKind.SERIES)
            assert [(e.entity_id, e.rank, e.overall_score) for e in board] == [
                ("s1", 1, 9.0),
                ("s2", 2, 9.0),
            ]
            third = await store.get_entity_scores(EntityKind.SERIES, "s3")
            assert (third.overall_score, third.rank) == (0.0, 0)
            walter = await store.get_entity_scores(EntityKind.CHARACTER, "c1")
            assert (walter.overall_score, walter.rank) == (6.5, 1)
            assert walter.pillar_scores["depth"]["rater_count"] == 1
        finally:
            await store.close()

    async def test_leaderboard_limit(self, seeded_url):
        await run_score_and_ranking_batch(EngineConfig(database_url=seeded_url))

        store = SQLGateway.from_url(seeded_url)
        try:
            board = await store.get_leaderboard(EntityKind.SERIES, limit=1)
        finally:
            await store.close()
        assert [e.entity_id for e in board] == ["s1"]


class TestDuckDBBatch:
    """Concurrent batches against a DuckDB file."""

    @pytest.fixture
    def duckdb_url(self, tmp_path):
        url = f"duckdb:///{tmp_path / 'store.duckdb'}"
        engine = create_store_engine(url)
        with Session(engine) as session:
            session.add(PillarTemplate(id="writing", type="writing", media_type="SERIES"))
            session.add(PillarTemplate(id="depth", type="depth", media_type="CHARACTER"))
            for i in range(30):
                created = T0 + timedelta(minutes=i)
                session.add(
                    Series(id=f"s{i}", slug=f"series-{i}", name=f"S{i}", created_at=created)
                )
                session.add(
                    Character(id=f"c{i}", slug=f"char-{i}", name=f"C{i}", created_at=created)
                )
                session.add(
                    UserPillarRating(
                        user_id="u1", entity_kind="SERIES", entity_id=f"s{i}",
                        pillar_id="writing", final_score=float(i % 10),
                    )
                )
                session.add(
                    UserPillarRating(
                        user_id="u1", entity_kind="CHARACTER", entity_id=f"c{i}",
                        pillar_id="depth", final_score=float((i + 3) % 10),
                    )
                )
            session.commit()
        engine.dispose()
        return url

    async def test_concurrent_kinds_and_entities(self, duckdb_url):
        config = EngineConfig(database_url=duckdb_url, max_concurrency=8)

        result = await run_score_and_ranking_batch(config)

        assert result.success, result.to_dict()
        assert result.per_type[EntityKind.SERIES].updated_count == 30
        assert result.per_type[EntityKind.SERIES].ranked_count == 30
        assert result.per_type[EntityKind.CHARACTER].ranked_count == 30

        store = SQLGateway.from_url(duckdb_url)
        try:
            board = await store.get_leaderboard(EntityKind.SERIES, limit=30)
        finally:
            await store.close()
        assert [e.rank for e in board] == list(range(1, 31))
        # Score 9.0 goes to s9, s19, s29; creation order breaks the tie
        assert [e.entity_id for e in board[:3]] == ["s9", "s19", "s29"]
