"""Externally triggered entry points for scheduled and manual runs."""

from __future__ import annotations

import asyncio
import hmac

import structlog

from pillar_ranker.core.config import EngineConfig
from pillar_ranker.core.errors import AuthorizationError, MissingSecretError
from pillar_ranker.models import BatchResult, EntityKind, EntityScore
from pillar_ranker.pipeline import ScoreRankingPipeline
from pillar_ranker.services.storage import PersistenceGateway, RetryingGateway, SQLGateway

logger = structlog.get_logger()

BEARER_PREFIX = "Bearer "


def authorize_trigger(config: EngineConfig, credential: str | None) -> None:
    """Check the trigger credential against the configured secret.

    Development mode accepts any caller. In production the secret must be
    configured and the credential (optionally "Bearer <secret>") must match.

    Raises:
        MissingSecretError: Production without a configured secret.
        AuthorizationError: Missing or wrong credential.
    """
    if not config.is_production:
        return

    secret = config.get_cron_secret()
    if not secret:
        logger.error("trigger_secret_missing")
        raise MissingSecretError()

    token = credential or ""
    if token.startswith(BEARER_PREFIX):
        token = token[len(BEARER_PREFIX) :]
    if not hmac.compare_digest(token.encode(), secret.encode()):
        logger.warning("trigger_unauthorized")
        raise AuthorizationError("Unauthorized")


async def open_gateway(
    config: EngineConfig, gateway: PersistenceGateway | None = None
) -> tuple[PersistenceGateway, bool]:
    """Return ``gateway``, or open an SQL gateway off the event loop.

    The flag tells whether the caller owns (and must close) the store.
    """
    if gateway is not None:
        return gateway, False
    # Engine creation and table setup are blocking
    store = await asyncio.to_thread(SQLGateway.from_url, config.database_url)
    return store, True


async def run_score_and_ranking_batch(
    config: EngineConfig,
    credential: str | None = None,
    gateway: PersistenceGateway | None = None,
) -> BatchResult:
    """Authorize, then run a full score and ranking batch.

    Args:
        config: Engine configuration.
        credential: Shared secret presented by the scheduler or operator.
        gateway: Store to use. When omitted one is opened from
            ``config.database_url`` and closed afterwards.

    Returns:
        BatchResult, with per-kind partial counts on partial failure.
    """
    authorize_trigger(config, credential)

    store, owned = await open_gateway(config, gateway)
    try:
        pipeline = ScoreRankingPipeline(RetryingGateway(store, config.retry), config)
        return await pipeline.run()
    finally:
        if owned:
            await store.close()


async def update_entity_score(
    config: EngineConfig,
    kind: EntityKind,
    entity_id: str,
    gateway: PersistenceGateway | None = None,
) -> EntityScore:
    """Recompute one entity's score after new ratings, without re-ranking."""
    store, owned = await open_gateway(config, gateway)
    try:
        pipeline = ScoreRankingPipeline(RetryingGateway(store, config.retry), config)
        return await pipeline.update_entity(kind, entity_id)
    finally:
        if owned:
            await store.close()
