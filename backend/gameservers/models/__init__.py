"""Database models."""
from .settings import Setting
from .server import GameServer
from .history import ServerHistory
from .data_store import DataStoreEntry

__all__ = ["Setting", "GameServer", "ServerHistory", "DataStoreEntry"]
