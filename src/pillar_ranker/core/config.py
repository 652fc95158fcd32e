"""Configuration schemas and loading for the scoring engine."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, field_validator

DEFAULT_DATABASE_URL = "duckdb:///pillar_ranker.duckdb"

ENV_DATABASE_URL = "PILLAR_RANKER_DATABASE_URL"
ENV_ENVIRONMENT = "PILLAR_RANKER_ENV"
ENV_CRON_SECRET = "CRON_SECRET"


class RetryConfig(BaseModel):
    """Backoff settings for store calls.

    Attempt n (0-indexed) waits ``base_delay_ms * 2**n`` plus up to
    ``jitter_ratio`` of that delay at random.
    """

    max_retries: int = Field(default=3, ge=0)
    base_delay_ms: float = Field(default=200.0, gt=0)
    jitter_ratio: float = Field(default=0.5, ge=0, le=1)

    @property
    def base_delay_seconds(self) -> float:
        return self.base_delay_ms / 1000


class EngineConfig(BaseModel):
    """Complete engine configuration.

    Attributes:
        database_url: SQLAlchemy URL of the durable store.
        environment: "production" requires a trigger secret.
        cron_secret: Shared secret for the batch trigger. Falls back to the
            CRON_SECRET environment variable.
        max_concurrency: Upper bound on in-flight store calls per run.
        concurrent_kinds: Process entity kinds concurrently instead of in order.
        batch_writes: Persist a kind's scores and ranks with one bulk call each.
        leaderboard_size: Default row count for leaderboard queries.
        retry: Backoff settings for store calls.
    """

    database_url: str = DEFAULT_DATABASE_URL
    environment: Literal["development", "production"] = "development"
    cron_secret: str | None = None
    max_concurrency: int = Field(default=8, ge=1)
    concurrent_kinds: bool = True
    batch_writes: bool = False
    leaderboard_size: int = Field(default=10, ge=1)
    retry: RetryConfig = Field(default_factory=RetryConfig)

    @field_validator("database_url")
    @classmethod
    def validate_database_url(cls, v: str) -> str:
        if not v or not v.strip():
            msg = "database_url cannot be empty"
            raise ValueError(msg)
        return v.strip()

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cron_secret(self) -> str | None:
        """Get the trigger secret from config or environment."""
        return self.cron_secret or os.environ.get(ENV_CRON_SECRET) or None

    @classmethod
    def from_env(cls) -> EngineConfig:
        """Build a config from defaults plus environment overrides."""
        data: dict[str, str] = {}
        if url := os.environ.get(ENV_DATABASE_URL):
            data["database_url"] = url
        if environment := os.environ.get(ENV_ENVIRONMENT):
            data["environment"] = environment.strip().lower()
        return cls.model_validate(data)


def load_config(path: str | Path) -> EngineConfig:
    """Load and validate configuration from YAML file.

    Args:
        path: Path to YAML configuration file.

    Returns:
        Validated EngineConfig instance.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        pydantic.ValidationError: If config is invalid.
    """
    config_path = Path(path)
    if not config_path.exists():
        msg = f"Configuration file not found: {config_path}"
        raise FileNotFoundError(msg)

    with config_path.open() as f:
        data = yaml.safe_load(f) or {}

    return EngineConfig.model_validate(data)
