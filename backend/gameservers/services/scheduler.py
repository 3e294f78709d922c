"""Scheduler service - runs game server refresh cycles.

The scheduler ticks every SCHEDULER_TICK_SECONDS and starts a refresh cycle
only when the configured refresh interval (gq_refresh_minutes) has passed
since the last successful cycle and API credentials are set. Cycles never
overlap: the APScheduler job allows one instance and every cycle, scheduled
or manual, runs under the same lock.
"""
import asyncio
import logging
import time
from typing import Callable, Dict, Optional

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..database import async_session
from ..errors import GameServersError
from .gamequery import GameQueryClient
from .stores import CacheStore, HistoryStore, ServerStore, SettingsStore
from .updater import ServerUpdater

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_MINUTES = 5
MAX_REFRESH_MINUTES = 60


def refresh_minutes(values: Dict[str, str]) -> int:
    """Configured refresh interval, clamped to 1-60 minutes."""
    try:
        minutes = int(values.get("gq_refresh_minutes") or DEFAULT_REFRESH_MINUTES)
    except ValueError:
        minutes = DEFAULT_REFRESH_MINUTES
    return max(1, min(MAX_REFRESH_MINUTES, minutes))


def is_refresh_due(values: Dict[str, str], now: float) -> bool:
    """True when the refresh interval has passed since the last successful cycle."""
    try:
        last_refresh = int(values.get("gq_last_refresh") or 0)
    except ValueError:
        last_refresh = 0
    return last_refresh <= now - refresh_minutes(values) * 60


class SchedulerService:
    """Service for scheduling and running refresh cycles."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] = async_session,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.session_factory = session_factory
        self.scheduler: Optional[AsyncIOScheduler] = None
        self._running = False
        self._lock = asyncio.Lock()
        self._transport = transport
        self._clock = clock

    def start(self):
        """Start the scheduler."""
        if self._running:
            return

        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(
            self.run_if_due,
            trigger=IntervalTrigger(seconds=settings.scheduler_tick_seconds),
            id="refresh_servers",
            replace_existing=True,
            max_instances=1,
            misfire_grace_time=settings.scheduler_tick_seconds,
        )

        self.scheduler.start()
        self._running = True
        logger.info(f"Scheduler started (tick={settings.scheduler_tick_seconds}s)")

    def stop(self):
        """Stop the scheduler."""
        if self.scheduler and self._running:
            self.scheduler.shutdown(wait=False)
            self._running = False
            logger.info("Scheduler stopped")

    async def run_if_due(self) -> Optional[int]:
        """Run a refresh cycle if one is due; errors are logged, not raised."""
        try:
            async with self.session_factory() as session:
                values = await SettingsStore(session).get_all()

            if not is_refresh_due(values, self._clock()):
                return None

            if not values.get("gq_api_token", "").strip() or not values.get("gq_api_token_email", "").strip():
                logger.debug("Skipping refresh: GameQuery credentials not configured")
                return None

            return await self.refresh_now()

        except GameServersError as e:
            logger.error(f"Game server refresh failed: {e}")
        except Exception as e:
            logger.error(f"Error running refresh: {e}")
        return None

    async def refresh_now(self) -> int:
        """Run one refresh cycle immediately and record it as the last refresh.

        Raises:
            GameServersError: the cycle failed; gq_last_refresh is left unchanged
        """
        async with self._lock:
            async with self.session_factory() as session:
                settings_store = SettingsStore(session)
                updater = ServerUpdater(
                    servers=ServerStore(session),
                    client=GameQueryClient(cache=CacheStore(session), transport=self._transport),
                    credentials=await settings_store.credentials(),
                    history=HistoryStore(session),
                )

                updated = await updater.refresh()
                await settings_store.set_many({"gq_last_refresh": int(self._clock())})

        if updated:
            logger.info(f"Updated {updated} game server(s).")
        return updated


# Global instance
scheduler_service = SchedulerService()
