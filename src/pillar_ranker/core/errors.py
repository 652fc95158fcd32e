"""Custom exceptions for configuration, authorization and scoring errors."""

from __future__ import annotations


class ConfigurationError(Exception):
    """Base exception for configuration errors with optional suggestions."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        msg = f"[Configuration Error] {self.message}"
        if self.suggestion:
            msg += f"\n[Suggestion] {self.suggestion}"
        return msg


class MissingSecretError(ConfigurationError):
    """Error when the trigger secret is required but not configured."""

    def __init__(self) -> None:
        super().__init__(
            "Trigger secret required in production",
            "Set CRON_SECRET or add cron_secret to the config file.",
        )


class ValidationError(ConfigurationError):
    """Error when configuration validation fails."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(
            f"Invalid value for '{field}'",
            f"{reason}",
        )


class ScoringError(Exception):
    """Base exception for errors raised by the scoring engine."""


class AuthorizationError(ScoringError):
    """The batch trigger was called without a valid credential."""


class EntityNotFoundError(ScoringError):
    """An entity referenced by a write or lookup does not exist."""

    def __init__(self, kind: str, entity_id: str) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} entity not found: {entity_id}")


class MalformedRecordError(ScoringError):
    """A rating row for one entity carries out-of-range data."""

    def __init__(self, entity_id: str, reason: str, kind: str | None = None) -> None:
        self.entity_id = entity_id
        self.reason = reason
        self.kind = kind
        where = f"{kind} entity {entity_id}" if kind else f"entity {entity_id}"
        super().__init__(f"Malformed rating data for {where}: {reason}")


class TransientStoreError(ScoringError):
    """A connectivity fault reported by the data layer.

    Attributes:
        code: Optional service-level fault code (e.g. "P6000").
    """

    def __init__(self, message: str, code: str | None = None) -> None:
        self.code = code
        super().__init__(message)
