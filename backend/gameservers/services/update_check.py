"""Update check - cached lookup of the latest released version."""
import json
import logging
import re
import time
from typing import Any, Callable, Dict, Optional

import httpx

from ..config import settings
from .stores import CacheStore

logger = logging.getLogger(__name__)

CACHE_KEY = "gq_update_check"

# key: value patterns for feeds that are not strict JSON
LOOSE_PATTERNS = {
    "version": re.compile(r"version\s*[:=]\s*[\"']?([^,\n\r\"'}]+)", re.IGNORECASE),
    "longversion": re.compile(r"longversion\s*[:=]\s*[\"']?([0-9]+)", re.IGNORECASE),
    "released": re.compile(r"released\s*[:=]\s*[\"']?([^,\n\r\"'}]+)", re.IGNORECASE),
    "updateurl": re.compile(r"updateurl\s*[:=]\s*[\"']?(https?://[^,\n\r\"'}\s]+)", re.IGNORECASE),
    "releasenotes": re.compile(r"releasenotes\s*[:=]\s*[\"']?([^\n\r}]+)", re.IGNORECASE),
}


def _int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def parse_loose_payload(body: str) -> Dict[str, Any]:
    """Pull version fields out of a non-JSON body."""
    body = body.strip()
    if not body:
        return {}

    values: Dict[str, Any] = {}
    for key, pattern in LOOSE_PATTERNS.items():
        match = pattern.search(body)
        if match:
            values[key] = match.group(1).strip()

    if "longversion" in values:
        values["longversion"] = int(values["longversion"])

    return values


class UpdateCheck:
    """Tells whether a newer release than the running one is available."""

    def __init__(
        self,
        cache: Optional[CacheStore],
        current_long_version: int,
        feed_url: Optional[str] = None,
        download_url: Optional[str] = None,
        ttl: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.current_long_version = current_long_version
        self.feed_url = feed_url or settings.update_check_url
        self.download_url = download_url or settings.update_check_download_url
        self.ttl = ttl if ttl is not None else settings.update_check_ttl_seconds
        self.timeout = timeout if timeout is not None else settings.update_check_timeout_seconds
        self._transport = transport
        self._clock = clock

    async def latest_available(self) -> Dict[str, Any]:
        """Latest release payload if it is newer than the running version."""
        latest = await self.latest()
        if not latest:
            return {}

        if latest["longversion"] <= self.current_long_version:
            return {}

        return latest

    async def latest(self) -> Dict[str, Any]:
        """Latest release payload, using the cache when possible."""
        cached = await self._cached()
        if cached:
            return cached

        remote = await self.fetch_remote()
        if remote and self.cache is not None:
            await self.cache.set(CACHE_KEY, {
                "checked_at": int(self._clock()),
                "payload": remote,
            })

        return remote

    async def fetch_remote(self) -> Dict[str, Any]:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.feed_url)
        except httpx.HTTPError as e:
            logger.warning(f"Update check failed: {e}")
            return {}

        try:
            decoded = response.json()
        except ValueError:
            decoded = parse_loose_payload(response.text)

        return self.normalize_payload(decoded)

    def normalize_payload(self, payload: Any) -> Dict[str, Any]:
        """Normalize a feed payload; a list resolves to its highest version."""
        if isinstance(payload, list):
            latest: Dict[str, Any] = {}
            for item in payload:
                item = self.normalize_payload(item)
                if item and (not latest or item["longversion"] > latest["longversion"]):
                    latest = item
            return latest

        if not isinstance(payload, dict):
            return {}

        version = str(payload.get("version") or "").strip()
        long_version = _int(payload.get("longversion"))

        if not version or long_version <= 0:
            return {}

        return {
            "version": version,
            "longversion": long_version,
            "released": str(payload.get("released") or "").strip(),
            "updateurl": str(payload.get("updateurl") or "").strip() or self.download_url,
            "releasenotes": str(payload.get("releasenotes") or "").strip(),
        }

    async def _cached(self) -> Dict[str, Any]:
        if self.cache is None:
            return {}

        cached = await self.cache.get(CACHE_KEY)
        if not isinstance(cached, dict):
            return {}

        checked_at = _int(cached.get("checked_at"))
        if checked_at <= 0 or checked_at + self.ttl < self._clock():
            return {}

        return self.normalize_payload(cached.get("payload"))
