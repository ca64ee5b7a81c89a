"""Ingestion and trending pipeline."""
from addon_radar.pipeline.calculator import CalculationResult, TrendingCalculator
from addon_radar.pipeline.rank_changes import RankChange, format_rank_change, get_rank_changes
from addon_radar.pipeline.retention import RetentionSweeper, SweepResult
from addon_radar.pipeline.sync import SyncResult, SyncService
from addon_radar.pipeline.writer import SnapshotWriter

__all__ = [
    "CalculationResult",
    "TrendingCalculator",
    "RankChange",
    "format_rank_change",
    "get_rank_changes",
    "RetentionSweeper",
    "SweepResult",
    "SyncResult",
    "SyncService",
    "SnapshotWriter",
]
