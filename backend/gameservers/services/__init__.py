"""Services for fetching, parsing, and storing game server status."""
from .gamequery import GameQueryClient
from .updater import ServerUpdater
from .scheduler import SchedulerService
from .update_check import UpdateCheck

__all__ = ["GameQueryClient", "ServerUpdater", "SchedulerService", "UpdateCheck"]
