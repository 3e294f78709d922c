"""Shared fixtures: in-memory SQLite and a mocked GameQuery API."""
import json
from typing import Callable

import httpx
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from gameservers.database import build_engine, init_db
from gameservers.models import GameServer
from gameservers.services.gamequery import GameQueryClient
from gameservers.services.stores import Credentials

FETCH_URL = "https://api.test/v1/post/fetch"
FALLBACK_URL = "https://fallback.test/v1/post/fetch"
GAMES_URL = "https://api.test/v1/get/games"

CREDENTIALS = Credentials(token="secret-token", token_type="", token_email="admin@example.com")


@pytest_asyncio.fixture
async def engine():
    """In-memory SQLite with all tables."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


def json_response(payload, status_code: int = 200) -> httpx.Response:
    return httpx.Response(status_code, content=json.dumps(payload).encode())


def make_client(handler: Callable[[httpx.Request], httpx.Response], **kwargs) -> GameQueryClient:
    """GameQueryClient wired to a mock transport."""
    kwargs.setdefault("endpoints", [FETCH_URL, FALLBACK_URL])
    kwargs.setdefault("games_endpoint", GAMES_URL)
    return GameQueryClient(transport=httpx.MockTransport(handler), **kwargs)


async def add_servers(session: AsyncSession, *servers: GameServer) -> list:
    session.add_all(servers)
    await session.commit()
    return [server.id for server in servers]
