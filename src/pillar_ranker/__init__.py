"""Pillar Ranker.

Batch aggregation of per-user pillar ratings into weighted overall
scores and dense per-kind rankings.
"""

from pillar_ranker.models import BatchResult, EntityKind, KindResult

__version__ = "0.3.0"
__all__ = [
    "BatchResult",
    "EntityKind",
    "KindResult",
    "__version__",
]
