"""Database-backed stores used by the refresh pipeline.

Each store wraps one AsyncSession. ServerStore and HistoryStore leave
committing to the caller so the updater controls transaction boundaries;
SettingsStore and CacheStore commit their own writes.
"""
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import select, update, delete, inspect
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import GameServer, ServerHistory, Setting, DataStoreEntry
from ..models.settings import DEFAULT_SETTINGS
from ..utils.db_utils import retry_on_lock

logger = logging.getLogger(__name__)


@dataclass
class Credentials:
    """GameQuery API credentials."""
    token: str = ""
    token_type: str = ""
    token_email: str = ""


def hour_bucket(moment: datetime) -> datetime:
    """Floor a UTC timestamp to the start of its hour."""
    return moment.replace(minute=0, second=0, microsecond=0)


class ServerStore:
    """Reads enabled servers and writes their runtime status."""

    def __init__(self, session: AsyncSession, clock: Callable[[], datetime] = datetime.utcnow):
        self.session = session
        self._clock = clock

    def now(self) -> datetime:
        return self._clock()

    async def list_enabled_servers(self) -> List[GameServer]:
        result = await self.session.execute(
            select(GameServer)
            .where(GameServer.enabled == 1)
            .order_by(GameServer.id)
        )
        return list(result.scalars().all())

    async def apply_server_update(self, server_id: int, patch: Dict[str, Any]) -> None:
        await self.session.execute(
            update(GameServer)
            .where(GameServer.id == server_id)
            .values(**patch)
        )


class HistoryStore:
    """Hourly history points, one row per server per hour."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def is_available(self) -> bool:
        """Check whether the history table exists."""
        conn = await self.session.connection()
        return await conn.run_sync(
            lambda sync_conn: inspect(sync_conn).has_table(ServerHistory.__tablename__)
        )

    async def upsert_history_point(
        self,
        server_id: int,
        recorded_hour: datetime,
        online: Optional[bool],
        players_online: Optional[int],
        players_max: Optional[int],
    ) -> None:
        """Insert the point, or overwrite the existing one for the same hour."""
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = insert(ServerHistory).values(
            server_id=server_id,
            recorded_hour=recorded_hour,
            online=online,
            players_online=players_online,
            players_max=players_max,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["server_id", "recorded_hour"],
            set_={
                "online": stmt.excluded.online,
                "players_online": stmt.excluded.players_online,
                "players_max": stmt.excluded.players_max,
            },
        )
        await self.session.execute(stmt)

    async def prune_history_older_than(self, cutoff: datetime) -> int:
        result = await self.session.execute(
            delete(ServerHistory)
            .where(ServerHistory.recorded_hour < cutoff)
        )
        return result.rowcount or 0

    async def points(self, server_id: int, since: Optional[datetime] = None) -> List[ServerHistory]:
        """History points for a server, oldest first."""
        query = select(ServerHistory).where(ServerHistory.server_id == server_id)
        if since is not None:
            query = query.where(ServerHistory.recorded_hour >= since)
        result = await self.session.execute(query.order_by(ServerHistory.recorded_hour.asc()))
        return list(result.scalars().all())


class SettingsStore:
    """Key-value settings with defaults from DEFAULT_SETTINGS."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_all(self) -> Dict[str, str]:
        """Get all settings as a dictionary."""
        result = await self.session.execute(select(Setting))

        # Start with defaults, override with stored values
        settings_dict = dict(DEFAULT_SETTINGS)
        for setting in result.scalars().all():
            settings_dict[setting.key] = setting.value

        return settings_dict

    async def get(self, key: str) -> str:
        setting = await self.session.get(Setting, key)
        if setting is not None:
            return setting.value
        return DEFAULT_SETTINGS.get(key, "")

    async def set_many(self, values: Dict[str, Any]) -> None:
        for key, value in values.items():
            setting = await self.session.get(Setting, key)
            if setting is None:
                self.session.add(Setting(key=key, value=str(value)))
            else:
                setting.value = str(value)
        await retry_on_lock(self.session.commit)

    async def credentials(self) -> Credentials:
        values = await self.get_all()
        return Credentials(
            token=values.get("gq_api_token", "").strip(),
            token_type=values.get("gq_api_token_type", "").strip(),
            token_email=values.get("gq_api_token_email", "").strip(),
        )


class CacheStore:
    """JSON values cached in the data_store table."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, key: str) -> Any:
        entry = await self.session.get(DataStoreEntry, key)
        if entry is None:
            return None
        try:
            return json.loads(entry.value)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable cache entry {key}")
            return None

    async def set(self, key: str, value: Any) -> None:
        payload = json.dumps(value, separators=(",", ":"))
        entry = await self.session.get(DataStoreEntry, key)
        if entry is None:
            self.session.add(DataStoreEntry(key=key, value=payload))
        else:
            entry.value = payload
            entry.updated_at = datetime.utcnow()
        await retry_on_lock(self.session.commit)
