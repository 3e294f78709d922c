"""Refresh, catalog, and update check schemas."""
from typing import Dict, Optional
from pydantic import BaseModel


class RefreshResult(BaseModel):
    """Result of a manual refresh cycle."""
    updated: int


class GameList(BaseModel):
    """Game catalog as id => display name."""
    games: Dict[str, str]
    labels: Dict[str, str]


class UpdateInfo(BaseModel):
    """Newer release details, if one is available."""
    available: bool
    version: Optional[str] = None
    longversion: Optional[int] = None
    released: Optional[str] = None
    updateurl: Optional[str] = None
    releasenotes: Optional[str] = None
