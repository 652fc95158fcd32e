"""Rating pillar and question templates."""

import uuid

from sqlmodel import Field, SQLModel


class PillarTemplate(SQLModel, table=True):
    """A named rating dimension configured per media kind.

    ``weight`` (0-10) is the pillar's contribution to the overall score.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    type: str = Field(index=True)
    media_type: str = Field(index=True)  # EntityKind value
    weight: float = 1.0
    icon: str | None = None
    description: str | None = None


class Question(SQLModel, table=True):
    """A question answered by users to produce a pillar score."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    pillar_id: str = Field(foreign_key="pillartemplate.id", index=True)
    text: str
    weight: float = 1.0
