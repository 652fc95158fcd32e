from pillar_ranker.models.entity import (
    ENTITY_TABLES,
    Character,
    EntityBase,
    Episode,
    Season,
    Series,
    entity_table,
)
from pillar_ranker.models.kind import EntityKind
from pillar_ranker.models.pillar import PillarTemplate, Question
from pillar_ranker.models.rating import UserPillarRating
from pillar_ranker.models.records import (
    EntityOrder,
    EntityScore,
    EntityScoreView,
    PillarScore,
    RatingRow,
)
from pillar_ranker.models.results import BatchResult, KindResult

__all__ = [
    "ENTITY_TABLES",
    "BatchResult",
    "Character",
    "EntityBase",
    "EntityKind",
    "EntityOrder",
    "EntityScore",
    "EntityScoreView",
    "Episode",
    "KindResult",
    "PillarScore",
    "PillarTemplate",
    "Question",
    "RatingRow",
    "Season",
    "Series",
    "UserPillarRating",
    "entity_table",
]
