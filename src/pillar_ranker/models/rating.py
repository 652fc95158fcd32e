"""Finalized per-user pillar ratings."""

import uuid
from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


class UserPillarRating(SQLModel, table=True):
    """A user's finalized 0-10 score for one pillar of one entity."""

    __table_args__ = (
        UniqueConstraint("user_id", "entity_kind", "entity_id", "pillar_id"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    user_id: str = Field(index=True)
    entity_kind: str = Field(index=True)  # EntityKind value
    entity_id: str = Field(index=True)
    pillar_id: str = Field(foreign_key="pillartemplate.id", index=True)
    final_score: float
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
