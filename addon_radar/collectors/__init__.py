"""Upstream API clients."""
from addon_radar.collectors.circuit import CircuitBreaker
from addon_radar.collectors.curseforge import (
    CurseForgeClient,
    SortStrategy,
    DEFAULT_SORT_STRATEGIES,
    SORT_POPULARITY,
    SORT_LAST_UPDATED,
    SORT_TOTAL_DOWNLOADS,
)

__all__ = [
    "CircuitBreaker",
    "CurseForgeClient",
    "SortStrategy",
    "DEFAULT_SORT_STRATEGIES",
    "SORT_POPULARITY",
    "SORT_LAST_UPDATED",
    "SORT_TOTAL_DOWNLOADS",
]
