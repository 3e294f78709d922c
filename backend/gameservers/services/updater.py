"""Server updater - runs one status refresh cycle for all enabled servers.

Cycle: load enabled servers, fetch their status from GameQuery, walk the
response into per-address records, then write each server's status and its
hourly history point. Fetch and parse failures abort before anything is
written; a failure while writing one server is logged and rolled back,
and the cycle moves on to the next server.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from ..config import settings
from ..errors import UnparsableResponse
from ..utils.address import normalize_address
from ..utils.db_utils import retry_on_lock
from .gamequery import GameQueryClient
from .stores import Credentials, HistoryStore, ServerStore, hour_bucket
from .walker import StatusRecord, walk_response

logger = logging.getLogger(__name__)


def status_patch(record: Optional[StatusRecord]) -> Dict[str, Any]:
    """Runtime fields for a server, given its record (None = absent from response).

    A server missing from a successful response is stored as offline. Player
    counts are kept only while the server is online.
    """
    if record is None:
        return {
            "online": False,
            "players_online": None,
            "players_max": None,
            "status_json": None,
        }

    online = record.online is True
    return {
        "online": record.online,
        "players_online": record.players_online if online else None,
        "players_max": record.players_max if online else None,
        "status_json": json.dumps(record.raw, ensure_ascii=False, separators=(",", ":")),
    }


class ServerUpdater:
    """Refreshes stored server status from the GameQuery API."""

    def __init__(
        self,
        servers: ServerStore,
        client: GameQueryClient,
        credentials: Credentials,
        history: Optional[HistoryStore] = None,
        retention_days: Optional[int] = None,
    ):
        self.servers = servers
        self.client = client
        self.credentials = credentials
        self.history = history
        self.retention_days = retention_days if retention_days is not None else settings.history_retention_days

    @property
    def session(self):
        return self.servers.session

    async def refresh(self) -> int:
        """Refresh all enabled servers.

        Returns:
            Number of enabled servers processed, hit or miss

        Raises:
            CredentialsMissing, FetchFailed: from the fetch, nothing written
            UnparsableResponse: no server fragments found, nothing written
        """
        servers = await self.servers.list_enabled_servers()
        if not servers:
            return 0

        response = await self.client.fetch(servers, self.credentials)
        if response is None:
            logger.debug("No servers with a game id and address to fetch")
            return 0

        if not response:
            raise UnparsableResponse("GameQuery returned an empty response.")

        mapped = walk_response(response)
        if not mapped:
            raise UnparsableResponse("Could not parse GameQuery response.")

        # Plain values up front; commits and rollbacks may expire the loaded rows
        targets = [(server.id, server.address or "") for server in servers]

        now = self.servers.now()
        record_history = self.history is not None and await self.history.is_available()

        if record_history:
            cutoff = now - timedelta(days=self.retention_days)
            pruned = await self.history.prune_history_older_than(cutoff)
            await retry_on_lock(self.session.commit)
            if pruned:
                logger.debug(f"Pruned {pruned} history points older than {cutoff}")

        failed = 0
        for server_id, address in targets:
            if not await self._apply(server_id, address, mapped, now, record_history):
                failed += 1

        if failed:
            logger.warning(f"{failed} of {len(targets)} game server(s) could not be written")

        return len(targets)

    async def _apply(
        self,
        server_id: int,
        address: str,
        mapped: Dict[str, StatusRecord],
        now: datetime,
        record_history: bool,
    ) -> bool:
        """Write one server's status and history point in its own commit."""
        record = mapped.get(normalize_address(address))
        patch = status_patch(record)

        try:
            await self.servers.apply_server_update(server_id, {
                **patch,
                "last_checked": now,
                "updated_at": now,
            })

            if record_history:
                await self.history.upsert_history_point(
                    server_id,
                    hour_bucket(now),
                    patch["online"],
                    patch["players_online"],
                    patch["players_max"],
                )

            await retry_on_lock(self.session.commit)
        except Exception as e:
            logger.error(f"Error updating game server {server_id}: {e}")
            await self.session.rollback()
            return False

        return True
