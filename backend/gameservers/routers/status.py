"""Refresh, game catalog, and update check endpoints."""
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from .. import LONG_VERSION
from ..database import get_db
from ..errors import CredentialsMissing, GameServersError
from ..schemas.status import RefreshResult, GameList, UpdateInfo
from ..services.gamequery import GameQueryClient, game_labels
from ..services.scheduler import scheduler_service
from ..services.stores import CacheStore
from ..services.update_check import UpdateCheck

router = APIRouter(prefix="/api", tags=["status"])


def _error_to_http(exc: GameServersError) -> HTTPException:
    """Missing credentials are a configuration problem; the rest are upstream failures."""
    if isinstance(exc, CredentialsMissing):
        return HTTPException(status_code=400, detail=str(exc))
    return HTTPException(status_code=502, detail=str(exc))


@router.post("/refresh", response_model=RefreshResult)
async def refresh_servers():
    """Run a refresh cycle now."""
    try:
        updated = await scheduler_service.refresh_now()
    except GameServersError as e:
        raise _error_to_http(e)
    return RefreshResult(updated=updated)


@router.get("/games", response_model=GameList)
async def list_games(
    force: bool = Query(False, description="Bypass the cached game list"),
    db: AsyncSession = Depends(get_db),
):
    """Get the GameQuery game catalog."""
    try:
        games = await GameQueryClient(cache=CacheStore(db)).games(force_refresh=force)
    except GameServersError as e:
        raise _error_to_http(e)
    return GameList(games=games, labels=game_labels(games))


@router.get("/update-check", response_model=UpdateInfo)
async def update_check(db: AsyncSession = Depends(get_db)):
    """Report whether a newer release is available."""
    latest = await UpdateCheck(CacheStore(db), LONG_VERSION).latest_available()
    if not latest:
        return UpdateInfo(available=False)
    return UpdateInfo(available=True, **latest)
