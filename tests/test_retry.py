"""Tests for transient fault classification and retry backoff."""

import random

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from pillar_ranker.core.errors import EntityNotFoundError, TransientStoreError
from pillar_ranker.models import EntityKind
from pillar_ranker.services.retry import (
    ENGINE_UNREACHABLE,
    GATEWAY_CONNECTION_ERROR,
    is_transient,
    with_retry,
)
from pillar_ranker.services.storage import InMemoryGateway, RetryingGateway


class _RecordingSleep:
    def __init__(self):
        self.waits: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.waits.append(seconds)


class _CodedError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.code = code


class TestIsTransient:
    """Tests for the transient fault predicate."""

    @pytest.mark.parametrize(
        "message",
        [
            "fetch failed",
            "SocketError: other side closed",
            "connect ETIMEDOUT 10.0.0.1:5432",
            "UND_ERR_SOCKET",
            "Connection reset by peer",
            "connection refused",
            "read timed out",
            "server unreachable",
        ],
    )
    def test_known_signatures(self, message):
        """Messages with a known connectivity signature are transient."""
        assert is_transient(RuntimeError(message))

    def test_fault_codes(self):
        """The two service-level fault codes are transient whatever the message."""
        assert is_transient(_CodedError("engine error", ENGINE_UNREACHABLE))
        assert is_transient(_CodedError("gateway error", GATEWAY_CONNECTION_ERROR))
        assert is_transient(TransientStoreError("boom", code=ENGINE_UNREACHABLE))

    def test_other_codes_not_transient(self):
        """Unknown codes fall back to message matching."""
        assert not is_transient(_CodedError("unique constraint", "P2002"))

    def test_builtin_connection_errors(self):
        """Built-in connection and timeout errors are transient."""
        assert is_transient(ConnectionResetError())
        assert is_transient(TimeoutError())

    def test_cause_message_is_checked(self):
        """A signature in the chained cause counts."""
        try:
            try:
                raise OSError("ECONNRESET")
            except OSError as inner:
                raise RuntimeError("query failed") from inner
        except RuntimeError as e:
            assert is_transient(e)

    def test_sqlalchemy_locked_database(self):
        """A locked SQLite database is retried."""
        error = OperationalError("UPDATE series", {}, Exception("database is locked"))
        assert is_transient(error)

    @pytest.mark.parametrize(
        "error",
        [
            ValueError("score must be between 0 and 10"),
            EntityNotFoundError("SERIES", "missing"),
            IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed")),
        ],
    )
    def test_fatal_errors(self, error):
        """Validation, not-found and constraint errors are not transient."""
        assert not is_transient(error)


class TestWithRetry:
    """Tests for the retry wrapper."""

    async def test_success_first_try(self):
        """A succeeding operation runs once without waiting."""
        sleep = _RecordingSleep()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            return "ok"

        assert await with_retry(operation, sleep=sleep) == "ok"
        assert calls == 1
        assert sleep.waits == []

    async def test_retry_then_success(self):
        """Two transient failures then success: result returned after two backoff waits."""
        sleep = _RecordingSleep()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            if calls <= 2:
                raise ConnectionResetError("connection reset")
            return 42

        result = await with_retry(operation, max_retries=3, sleep=sleep)

        assert result == 42
        assert calls == 3
        assert len(sleep.waits) == 2
        assert 0.2 <= sleep.waits[0] <= 0.3
        assert 0.4 <= sleep.waits[1] <= 0.6

    async def test_exhaustion_reraises_original(self):
        """Always-transient operation makes max_retries + 1 attempts and re-raises unchanged."""
        sleep = _RecordingSleep()
        error = TransientStoreError("engine unreachable", code=ENGINE_UNREACHABLE)
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise error

        with pytest.raises(TransientStoreError) as exc_info:
            await with_retry(operation, max_retries=3, sleep=sleep)

        assert exc_info.value is error
        assert calls == 4
        assert len(sleep.waits) == 3
        assert 0.8 <= sleep.waits[2] <= 1.2

    async def test_non_retryable_short_circuit(self):
        """A validation error is raised after exactly one attempt."""
        sleep = _RecordingSleep()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise ValueError("weight must be between 0 and 10")

        with pytest.raises(ValueError, match="weight"):
            await with_retry(operation, sleep=sleep)

        assert calls == 1
        assert sleep.waits == []

    async def test_zero_retries(self):
        """max_retries=0 means a single attempt."""
        sleep = _RecordingSleep()
        calls = 0

        async def operation():
            nonlocal calls
            calls += 1
            raise TimeoutError

        with pytest.raises(TimeoutError):
            await with_retry(operation, max_retries=0, sleep=sleep)

        assert calls == 1

    async def test_jitter_bounds(self):
        """Waits never drop below the base delay nor exceed 150% of it."""
        for seed in range(20):
            sleep = _RecordingSleep()

            async def operation():
                raise TimeoutError

            with pytest.raises(TimeoutError):
                await with_retry(operation, sleep=sleep, rng=random.Random(seed))  # noqa: S311

            for n, wait in enumerate(sleep.waits):
                base = 0.2 * 2**n
                assert base <= wait <= base * 1.5 + 1e-9

    async def test_lambda_returning_coroutine(self):
        """A plain lambda that returns a coroutine is awaited and retried."""
        sleep = _RecordingSleep()
        calls = 0

        async def fetch(value):
            nonlocal calls
            calls += 1
            if calls == 1:
                raise ConnectionResetError("connection reset")
            return value

        result = await with_retry(lambda: fetch([1, 2]), sleep=sleep)

        assert result == [1, 2]
        assert calls == 2
        assert len(sleep.waits) == 1


class TestRetryingGateway:
    """Tests for the retrying gateway wrapper."""

    @pytest.fixture
    def store(self):
        store = InMemoryGateway()
        store.add_pillar("story", EntityKind.SERIES)
        store.add_entity(EntityKind.SERIES, "show")
        store.rate("u1", EntityKind.SERIES, "show", "story", 6.0)
        return store

    async def test_reads_return_values(self, store):
        gateway = RetryingGateway(store, sleep=_RecordingSleep())

        rows = await gateway.list_ratings_for_kind(EntityKind.SERIES)

        assert isinstance(rows, list)
        assert [(r.entity_id, r.score) for r in rows] == [("show", 6.0)]

    async def test_writes_retried_and_applied(self, store):
        sleep = _RecordingSleep()
        store.inject_fault(
            "write_entity_rank", ConnectionResetError("connection reset"), times=2
        )
        gateway = RetryingGateway(store, sleep=sleep)

        await gateway.write_entity_rank(EntityKind.SERIES, "show", 1)

        assert store.call_count("write_entity_rank") == 3
        assert len(sleep.waits) == 2
        assert store.snapshot(EntityKind.SERIES) == {"show": (0.0, 1)}
