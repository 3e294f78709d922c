"""Pydantic schemas for API request/response models."""
from .status import RefreshResult, GameList, UpdateInfo

__all__ = ["RefreshResult", "GameList", "UpdateInfo"]
