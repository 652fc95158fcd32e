"""Batch run results reported back to the trigger caller."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from pillar_ranker.models.kind import EntityKind


class KindResult(BaseModel):
    """Outcome of one entity kind within a batch run.

    Counts are partial when ``success`` is False.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: EntityKind
    success: bool = True
    updated_count: int = 0
    ranked_count: int = 0
    skipped_count: int = 0
    duration_ms: int = 0
    error: str | None = None


class BatchResult(BaseModel):
    """Summary of a full score and ranking batch."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    per_type: dict[EntityKind, KindResult] = Field(default_factory=dict)
    total_duration_ms: int = 0
    success: bool = True

    @property
    def failed_kinds(self) -> list[EntityKind]:
        return [kind for kind, result in self.per_type.items() if not result.success]

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys for the trigger response."""
        return self.model_dump(mode="json", by_alias=True)
