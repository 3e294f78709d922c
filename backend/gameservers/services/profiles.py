"""Game profiles - per-game display name and icon overrides.

Profiles are stored as one JSON object in the gq_game_profiles setting:
    {"minecraft": {"name": "Minecraft", "icon_type": "preset", "icon_value": "fa-solid fa-cube"}}
"""
import json
import logging
from typing import Any, Dict, Optional

from .stores import SettingsStore

logger = logging.getLogger(__name__)

SETTINGS_KEY = "gq_game_profiles"

ICON_TYPES = ("upload", "preset")


def normalize_game_id(game_id: str) -> str:
    """Normalize game id used as profile key."""
    return game_id.strip().lower()


def _normalize_profile(profile: Dict[str, Any]) -> Optional[Dict[str, str]]:
    """Clean one profile; None when it carries neither a name nor an icon."""
    name = str(profile.get("name") or "").strip()
    icon_type = str(profile.get("icon_type") or "").strip()
    icon_value = str(profile.get("icon_value") or "").strip()

    if icon_type not in ICON_TYPES:
        icon_type = ""
        icon_value = ""

    if not icon_value:
        icon_type = ""

    if not name and not icon_type:
        return None

    return {"name": name, "icon_type": icon_type, "icon_value": icon_value}


def _normalize_profiles(profiles: Dict[Any, Any]) -> Dict[str, Dict[str, str]]:
    normalized = {}
    for game_id, profile in profiles.items():
        if not isinstance(game_id, str) or not isinstance(profile, dict):
            continue

        game_id = normalize_game_id(game_id)
        if not game_id:
            continue

        cleaned = _normalize_profile(profile)
        if cleaned is not None:
            normalized[game_id] = cleaned
    return normalized


def parse_profiles(raw: str) -> Dict[str, Dict[str, str]]:
    """Decode stored profiles; anything unreadable yields no profiles."""
    raw = (raw or "").strip()
    if not raw:
        return {}

    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Ignoring unreadable game profiles setting")
        return {}

    if not isinstance(decoded, dict):
        return {}

    return _normalize_profiles(decoded)


def encode_profiles(profiles: Dict[Any, Any]) -> str:
    """Encode profiles for settings storage."""
    return json.dumps(_normalize_profiles(profiles), ensure_ascii=False, separators=(",", ":"))


class GameProfiles:
    """Game profile lookups backed by the settings table."""

    def __init__(self, settings_store: SettingsStore):
        self.settings_store = settings_store

    async def all(self) -> Dict[str, Dict[str, str]]:
        return parse_profiles(await self.settings_store.get(SETTINGS_KEY))

    async def get(self, game_id: str) -> Dict[str, str]:
        game_id = normalize_game_id(game_id)
        if not game_id:
            return {}
        return (await self.all()).get(game_id, {})

    async def save(self, profiles: Dict[Any, Any]) -> None:
        await self.settings_store.set_many({SETTINGS_KEY: encode_profiles(profiles)})

    async def display_name(self, game_id: str, games: Optional[Dict[str, str]] = None) -> str:
        """Profile name, else the catalog name, else the game id itself."""
        profile = await self.get(game_id)
        if profile.get("name"):
            return profile["name"]

        if games:
            for catalog_id, name in games.items():
                if normalize_game_id(catalog_id) == normalize_game_id(game_id) and name:
                    return name

        return game_id.strip()
