"""Core configuration and errors for the scoring engine."""

from pillar_ranker.core.config import (
    DEFAULT_DATABASE_URL,
    EngineConfig,
    RetryConfig,
    load_config,
)
from pillar_ranker.core.errors import (
    AuthorizationError,
    ConfigurationError,
    EntityNotFoundError,
    MalformedRecordError,
    MissingSecretError,
    ScoringError,
    TransientStoreError,
    ValidationError,
)

__all__ = [
    "DEFAULT_DATABASE_URL",
    "EngineConfig",
    "RetryConfig",
    "load_config",
    "AuthorizationError",
    "ConfigurationError",
    "EntityNotFoundError",
    "MalformedRecordError",
    "MissingSecretError",
    "ScoringError",
    "TransientStoreError",
    "ValidationError",
]
