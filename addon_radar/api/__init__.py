"""API helpers."""
from addon_radar.api.auth import verify_api_key

__all__ = ["verify_api_key"]
