"""GameQuery API client - status fetch with endpoint failover and game catalog."""
import json
import logging
import re
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

import httpx

from ..config import settings
from ..errors import CredentialsMissing, EmptyCatalog, FetchFailed
from .stores import CacheStore, Credentials

logger = logging.getLogger(__name__)

DEFAULT_TOKEN_TYPE = "FREE"

GAMES_CACHE_KEY = "gameservers_game_list"

# Body characters quoted in a non-JSON diagnostic
SNIPPET_LENGTH = 200

JsonTree = Union[Dict[str, Any], List[Any]]


def _text(value: Any) -> str:
    """String form of a scalar, '' for null."""
    return "" if value is None else str(value).strip()


def natural_key(value: str) -> list:
    """Case-insensitive natural sort key ('Game 2' before 'Game 10')."""
    return [int(part) if part.isdigit() else part for part in re.split(r"(\d+)", value.lower())]


def build_payload(servers: Iterable[Any]) -> Dict[str, List[Dict[str, Any]]]:
    """Group server addresses by game id for the fetch request.

    Servers with a blank game id or address are skipped; addresses are
    deduplicated per game, keeping first-seen order.
    """
    grouped: Dict[str, List[str]] = {}

    for server in servers:
        game_id = _text(getattr(server, "game_id", None))
        address = _text(getattr(server, "address", None))

        if not game_id or not address:
            continue

        addresses = grouped.setdefault(game_id, [])
        if address not in addresses:
            addresses.append(address)

    return {
        "servers": [
            {"game_id": game_id, "servers": addresses}
            for game_id, addresses in grouped.items()
            if addresses
        ]
    }


def game_labels(games: Dict[str, str]) -> Dict[str, str]:
    """Label each game "Name (id)", or just the id when the name adds nothing."""
    labels = {}
    for game_id, name in games.items():
        name = name.strip()
        labels[game_id] = f"{name} ({game_id})" if name and name != game_id else game_id
    return labels


class GameQueryClient:
    """Client for the GameQuery status and games endpoints."""

    def __init__(
        self,
        cache: Optional[CacheStore] = None,
        endpoints: Optional[List[str]] = None,
        games_endpoint: Optional[str] = None,
        timeout: Optional[float] = None,
        games_cache_ttl: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.endpoints = list(endpoints or settings.gamequery_endpoints)
        self.games_endpoint = games_endpoint or settings.gamequery_games_endpoint
        self.timeout = timeout if timeout is not None else settings.gamequery_timeout_seconds
        self.games_cache_ttl = games_cache_ttl if games_cache_ttl is not None else settings.games_cache_ttl_seconds
        self._transport = transport
        self._clock = clock

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def fetch(self, servers: Iterable[Any], credentials: Credentials) -> Optional[JsonTree]:
        """Fetch status data for servers.

        Returns None when no server has both a game id and an address.
        Endpoints are tried in order; the first one that answers with a JSON
        object or array and a non-error status wins.

        Raises:
            CredentialsMissing: token or token e-mail is blank
            FetchFailed: every endpoint failed
        """
        payload = build_payload(servers)
        if not payload["servers"]:
            return None

        token = credentials.token.strip()
        token_email = credentials.token_email.strip()
        token_type = credentials.token_type.strip() or DEFAULT_TOKEN_TYPE

        if not token or not token_email:
            raise CredentialsMissing()

        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "x-api-token": token,
            "x-api-token-type": token_type,
            "x-api-token-email": token_email,
        }
        request_body = json.dumps(payload)
        errors: List[str] = []

        async with self._client() as client:
            for endpoint in self.endpoints:
                try:
                    response = await client.post(endpoint, content=request_body, headers=headers)
                except httpx.TimeoutException:
                    errors.append(f"{endpoint} timed out after {self.timeout}s.")
                    logger.warning(f"GameQuery endpoint {endpoint} timed out")
                    continue
                except httpx.HTTPError as e:
                    errors.append(f"{endpoint} request failed: {e}")
                    logger.warning(f"GameQuery endpoint {endpoint} request failed: {e}")
                    continue

                decoded = self._decode_candidate(endpoint, response, errors)
                if decoded is not None:
                    return decoded

        raise FetchFailed("GameQuery request failed: " + " | ".join(errors), errors)

    def _decode_candidate(
        self,
        endpoint: str,
        response: httpx.Response,
        errors: List[str],
    ) -> Optional[JsonTree]:
        """Validate one endpoint's response; appends a diagnostic on failure."""
        body = response.text.strip()
        status_code = response.status_code

        if not body:
            errors.append(f"{endpoint} returned an empty response (HTTP {status_code}).")
        else:
            try:
                decoded = json.loads(body)
            except json.JSONDecodeError:
                snippet = body[:SNIPPET_LENGTH]
                if len(body) > SNIPPET_LENGTH:
                    snippet += "..."
                errors.append(f"{endpoint} returned non-JSON response (HTTP {status_code}): {snippet}")
            else:
                if not isinstance(decoded, (dict, list)):
                    errors.append(f"{endpoint} returned invalid JSON structure (HTTP {status_code}).")
                elif status_code >= 400:
                    errors.append(f"{endpoint} returned API error HTTP {status_code}.")
                else:
                    return decoded

        logger.warning(errors[-1])
        return None

    async def games(self, force_refresh: bool = False) -> Dict[str, str]:
        """Get games list as id => name.

        Served from cache while it is younger than the cache TTL. A forced
        refresh that fails falls back to a still-valid cached list.
        """
        cached = await self._cached_games()

        if not force_refresh and cached is not None:
            return cached

        try:
            games = await self._fetch_games()
        except (FetchFailed, EmptyCatalog) as e:
            if cached is None:
                raise
            logger.warning(f"Game list refresh failed, using cached list: {e}")
            return cached

        if self.cache is not None:
            await self.cache.set(GAMES_CACHE_KEY, {
                "fetched_at": int(self._clock()),
                "games": games,
            })

        return games

    async def game_labels(self, force_refresh: bool = False) -> Dict[str, str]:
        """Get games list as id => "Name (id)" for select inputs."""
        return game_labels(await self.games(force_refresh))

    async def _fetch_games(self) -> Dict[str, str]:
        """Fetch games list from the API, sorted by name."""
        async with self._client() as client:
            try:
                response = await client.get(self.games_endpoint, headers={"Accept": "application/json"})
            except httpx.HTTPError as e:
                raise FetchFailed(f"GameQuery games endpoint request failed: {e}") from e

        body = response.text.strip()
        status_code = response.status_code

        if not body:
            raise FetchFailed(f"GameQuery games endpoint returned empty response (HTTP {status_code}).")

        try:
            decoded = json.loads(body)
        except json.JSONDecodeError as e:
            raise FetchFailed(f"GameQuery games endpoint returned invalid JSON (HTTP {status_code}).") from e

        if not isinstance(decoded, (dict, list)):
            raise FetchFailed("GameQuery games endpoint returned invalid data structure.")

        items = decoded.values() if isinstance(decoded, dict) else decoded
        games: Dict[str, str] = {}

        for item in items:
            if not isinstance(item, dict):
                continue

            game_id = _text(item.get("id"))
            name = _text(item.get("name"))

            if not game_id:
                continue

            games[game_id] = name or game_id

        if not games:
            raise EmptyCatalog()

        return dict(sorted(games.items(), key=lambda entry: natural_key(entry[1])))

    async def _cached_games(self) -> Optional[Dict[str, str]]:
        """Cached games list if available and not expired."""
        if self.cache is None:
            return None

        cached = await self.cache.get(GAMES_CACHE_KEY)

        if not isinstance(cached, dict) or "fetched_at" not in cached or "games" not in cached:
            return None

        games = cached["games"]
        if not isinstance(games, dict) or not games:
            return None

        try:
            fetched_at = int(cached["fetched_at"])
        except (TypeError, ValueError):
            return None

        if fetched_at + self.games_cache_ttl < self._clock():
            return None

        return games
