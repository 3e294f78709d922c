"""GameQuery client: payload building, endpoint failover, and the game catalog."""
import json
from types import SimpleNamespace

import httpx
import pytest

from conftest import CREDENTIALS, FALLBACK_URL, FETCH_URL, GAMES_URL, json_response, make_client
from gameservers.errors import CredentialsMissing, EmptyCatalog, FetchFailed
from gameservers.services.gamequery import GAMES_CACHE_KEY, build_payload, game_labels
from gameservers.services.stores import CacheStore, Credentials


def server(game_id, address):
    return SimpleNamespace(game_id=game_id, address=address)


SERVERS = [server("minecraft", "mc.example.com:25565")]


def test_build_payload_groups_and_deduplicates():
    payload = build_payload([
        server("minecraft", "a:1"),
        server("csgo", " b:2 "),
        server("minecraft", "a:1"),
        server(" minecraft ", "c:3"),
        server("", "d:4"),
        server("rust", ""),
        server(None, None),
    ])

    assert payload == {
        "servers": [
            {"game_id": "minecraft", "servers": ["a:1", "c:3"]},
            {"game_id": "csgo", "servers": ["b:2"]},
        ]
    }


def test_build_payload_empty():
    assert build_payload([server("", "a:1")]) == {"servers": []}


@pytest.mark.asyncio
async def test_fetch_sends_payload_and_credential_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return json_response({"minecraft": {"mc.example.com:25565": {"online": True}}})

    result = await make_client(handler).fetch(SERVERS, CREDENTIALS)

    assert result == {"minecraft": {"mc.example.com:25565": {"online": True}}}
    assert len(seen) == 1
    request = seen[0]
    assert request.method == "POST"
    assert str(request.url) == FETCH_URL
    assert request.headers["x-api-token"] == "secret-token"
    assert request.headers["x-api-token-type"] == "FREE"
    assert request.headers["x-api-token-email"] == "admin@example.com"
    assert request.headers["content-type"] == "application/json"
    assert json.loads(request.content) == {
        "servers": [{"game_id": "minecraft", "servers": ["mc.example.com:25565"]}]
    }


@pytest.mark.asyncio
async def test_fetch_uses_configured_token_type():
    seen = []

    def handler(request):
        seen.append(request.headers["x-api-token-type"])
        return json_response([])

    credentials = Credentials(token="t", token_type="PRO", token_email="e@example.com")
    assert await make_client(handler).fetch(SERVERS, credentials) == []
    assert seen == ["PRO"]


@pytest.mark.asyncio
async def test_fetch_nothing_to_fetch_skips_network_and_credentials():
    def handler(request):
        raise AssertionError("no request expected")

    result = await make_client(handler).fetch([server("", "a:1")], Credentials())

    assert result is None


@pytest.mark.asyncio
@pytest.mark.parametrize("credentials", [
    Credentials(token="", token_email="admin@example.com"),
    Credentials(token="token", token_email="   "),
])
async def test_fetch_requires_credentials(credentials):
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(CredentialsMissing):
        await make_client(handler).fetch(SERVERS, credentials)


@pytest.mark.asyncio
async def test_fetch_fails_over_to_next_endpoint():
    calls = []

    def handler(request):
        calls.append(str(request.url))
        if str(request.url) == FETCH_URL:
            return httpx.Response(503, content=b"<html>Service Unavailable</html>")
        return json_response({"ok": True})

    result = await make_client(handler).fetch(SERVERS, CREDENTIALS)

    assert result == {"ok": True}
    assert calls == [FETCH_URL, FALLBACK_URL]


@pytest.mark.asyncio
async def test_fetch_timeout_counts_as_failed_candidate():
    def handler(request):
        if str(request.url) == FETCH_URL:
            raise httpx.ReadTimeout("timed out", request=request)
        return json_response([{"server": "a:1", "online": True}])

    result = await make_client(handler, timeout=1).fetch(SERVERS, CREDENTIALS)

    assert result == [{"server": "a:1", "online": True}]


@pytest.mark.asyncio
async def test_fetch_error_status_with_json_body_is_rejected():
    def handler(request):
        return json_response({"error": "invalid token"}, status_code=401)

    with pytest.raises(FetchFailed) as exc_info:
        await make_client(handler).fetch(SERVERS, CREDENTIALS)

    assert exc_info.value.errors == [
        f"{FETCH_URL} returned API error HTTP 401.",
        f"{FALLBACK_URL} returned API error HTTP 401.",
    ]


@pytest.mark.asyncio
async def test_fetch_collects_diagnostics_from_every_endpoint():
    long_body = "x" * 250

    def handler(request):
        if str(request.url) == FETCH_URL:
            return httpx.Response(200, content=long_body.encode())
        return httpx.Response(502, content=b"   ")

    with pytest.raises(FetchFailed) as exc_info:
        await make_client(handler).fetch(SERVERS, CREDENTIALS)

    error = exc_info.value
    assert error.errors == [
        f"{FETCH_URL} returned non-JSON response (HTTP 200): {'x' * 200}...",
        f"{FALLBACK_URL} returned an empty response (HTTP 502).",
    ]
    assert str(error) == "GameQuery request failed: " + " | ".join(error.errors)


@pytest.mark.asyncio
async def test_fetch_rejects_scalar_json():
    def handler(request):
        return httpx.Response(200, content=b'"ok"')

    with pytest.raises(FetchFailed) as exc_info:
        await make_client(handler, endpoints=[FETCH_URL]).fetch(SERVERS, CREDENTIALS)

    assert exc_info.value.errors == [f"{FETCH_URL} returned invalid JSON structure (HTTP 200)."]


@pytest.mark.asyncio
async def test_fetch_connection_error_is_reported():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(FetchFailed) as exc_info:
        await make_client(handler, endpoints=[FETCH_URL]).fetch(SERVERS, CREDENTIALS)

    assert "connection refused" in exc_info.value.errors[0]


GAMES_BODY = [
    {"id": "minecraft", "name": "Minecraft"},
    {"id": "cs2", "name": "counter-Strike 2"},
    {"id": "game10", "name": "Game 10"},
    {"id": "game2", "name": "Game 2"},
    {"id": "rust", "name": ""},
    {"id": "", "name": "No id"},
    "not-a-game",
]


@pytest.mark.asyncio
async def test_games_fetches_sorts_and_caches(session):
    calls = []

    def handler(request):
        calls.append(str(request.url))
        return json_response(GAMES_BODY)

    cache = CacheStore(session)
    client = make_client(handler, cache=cache, clock=lambda: 1_000_000)

    games = await client.games()

    assert calls == [GAMES_URL]
    assert list(games.items()) == [
        ("cs2", "counter-Strike 2"),
        ("game2", "Game 2"),
        ("game10", "Game 10"),
        ("minecraft", "Minecraft"),
        ("rust", "rust"),
    ]
    cached = await cache.get(GAMES_CACHE_KEY)
    assert cached["fetched_at"] == 1_000_000
    assert cached["games"] == games

    # Served from cache within the TTL
    assert await client.games() == games
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_games_cache_expires_after_ttl(session):
    calls = []

    def handler(request):
        calls.append(request)
        return json_response(GAMES_BODY)

    cache = CacheStore(session)
    await cache.set(GAMES_CACHE_KEY, {"fetched_at": 1_000_000, "games": {"old": "Old Game"}})

    fresh = make_client(handler, cache=cache, clock=lambda: 1_000_000 + 86400)
    assert await fresh.games() == {"old": "Old Game"}
    assert calls == []

    expired = make_client(handler, cache=cache, clock=lambda: 1_000_000 + 86401)
    assert "minecraft" in await expired.games()
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_games_empty_list_is_an_error(session):
    def handler(request):
        return json_response([{"id": ""}, {"name": "nameless"}])

    cache = CacheStore(session)
    with pytest.raises(EmptyCatalog):
        await make_client(handler, cache=cache).games()

    assert await cache.get(GAMES_CACHE_KEY) is None


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"", b"{not json", b"42"])
async def test_games_bad_body_raises(body):
    def handler(request):
        return httpx.Response(200, content=body)

    with pytest.raises(FetchFailed):
        await make_client(handler).games()


@pytest.mark.asyncio
async def test_forced_refresh_failure_falls_back_to_valid_cache(session):
    def handler(request):
        return httpx.Response(500, content=b"")

    cache = CacheStore(session)
    await cache.set(GAMES_CACHE_KEY, {"fetched_at": 1_000_000, "games": {"minecraft": "Minecraft"}})

    client = make_client(handler, cache=cache, clock=lambda: 1_000_100)
    assert await client.games(force_refresh=True) == {"minecraft": "Minecraft"}

    stale = make_client(handler, cache=cache, clock=lambda: 1_000_000 + 90000)
    with pytest.raises(FetchFailed):
        await stale.games(force_refresh=True)


@pytest.mark.asyncio
async def test_games_accepts_object_of_games():
    def handler(request):
        return json_response({"a": {"id": "minecraft", "name": "Minecraft"}})

    assert await make_client(handler).games() == {"minecraft": "Minecraft"}


def test_game_labels():
    assert game_labels({"minecraft": "Minecraft", "rust": "rust", "ark": " "}) == {
        "minecraft": "Minecraft (minecraft)",
        "rust": "rust",
        "ark": "ark",
    }
