"""Addon Radar: CurseForge addon ingestion and trending leaderboards."""

__version__ = "0.1.0"
