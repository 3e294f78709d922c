"""Response walker - maps GameQuery status fragments by server address.

The GameQuery response shape differs per game and is not fixed, so the walker
visits every object in the decoded tree and treats any object that carries
both an address and a status-shaped key as one server's status fragment.
"""
import math
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional, Sequence, Tuple

from ..utils.address import is_address, normalize_address

# Keys whose presence marks an object as a status fragment
STATUS_KEYS = (
    "online",
    "is_online",
    "status",
    "state",
    "_updater",
    "players",
    "players_online",
    "players_max",
    "online_players",
    "numplayers",
    "maxplayers",
)

ADDRESS_KEYS = ("server", "address", "ip_port", "host")

ONLINE_PATHS = (
    ("online",),
    ("is_online",),
    ("status",),
    ("state",),
    ("_updater", "status"),
    ("_updater", "online"),
    ("_updater", "is_online"),
)

PLAYERS_ONLINE_PATHS = (
    ("players_online",),
    ("online_players",),
    ("numplayers",),
    ("players",),
    ("players", "online"),
    ("players", "current"),
)

PLAYERS_MAX_PATHS = (
    ("players_max",),
    ("maxplayers",),
    ("max_players",),
    ("players", "max"),
    ("players", "maximum"),
)

POSITIVE_STATES = frozenset({"online", "up", "alive", "true", "yes", "ok", "running"})
NEGATIVE_STATES = frozenset({"offline", "down", "dead", "false", "no", "error", "stopped"})

# Player counts must fit a signed 64-bit INTEGER column
MAX_COUNT = 2 ** 63 - 1
MIN_COUNT = -(2 ** 63)

_NUMERIC_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?")

_MISSING = object()


@dataclass
class StatusRecord:
    """Normalized status of one server, extracted from a response fragment."""
    online: Optional[bool]
    players_online: Optional[int]
    players_max: Optional[int]
    raw: Dict[str, Any]


def value_by_path(node: Any, path: Sequence[str]) -> Any:
    """Follow dict keys along path; returns _MISSING when any step is absent."""
    current = node
    for segment in path:
        if not isinstance(current, dict) or segment not in current:
            return _MISSING
        current = current[segment]
    return current


def first_value(
    node: Dict[str, Any],
    paths: Iterable[Tuple[str, ...]],
    coerce: Callable[[Any], Any],
) -> Any:
    """Return the first coerced value found along the candidate paths.

    Missing paths and null values are skipped, as is anything coerce maps
    to None.
    """
    for path in paths:
        value = value_by_path(node, path)
        if value is _MISSING or value is None:
            continue
        coerced = coerce(value)
        if coerced is not None:
            return coerced
    return None


def to_number(value: Any) -> Optional[float]:
    """Numbers and numeric strings as float; everything else is None."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return float(value)
    if isinstance(value, str):
        text = value.strip()
        if _NUMERIC_RE.fullmatch(text):
            number = float(text)
            return number if math.isfinite(number) else None
    return None


def to_int(value: Any) -> Optional[int]:
    """Coerce a player count; non-numeric values are skipped, not zero.

    Counts outside the signed 64-bit range are skipped as well.
    """
    number = to_number(value)
    if number is None:
        return None
    count = int(number)
    if not MIN_COUNT <= count <= MAX_COUNT:
        return None
    return count


def to_bool(value: Any) -> Optional[bool]:
    """Convert mixed value to bool where possible."""
    if isinstance(value, bool):
        return value

    number = to_number(value)
    if number is not None:
        return int(number) > 0

    if isinstance(value, str):
        state = value.strip().lower()
        if state in POSITIVE_STATES:
            return True
        if state in NEGATIVE_STATES:
            return False

    return None


def _present(value: Any) -> bool:
    """Non-blank, non-zero string or number."""
    if value is None or isinstance(value, (bool, dict, list)):
        return False
    if isinstance(value, str):
        return value.strip() not in ("", "0")
    return value != 0


def extract_address(node: Dict[str, Any], hint: Optional[str] = None) -> Optional[str]:
    """Extract a server address from a response node."""
    for key in ADDRESS_KEYS:
        value = node.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()

    ip = node.get("ip")
    port = node.get("port")
    if _present(ip) and _present(port):
        return f"{str(ip).strip()}:{str(port).strip()}"

    if hint is not None and is_address(hint):
        return hint

    return None


def has_status_data(node: Dict[str, Any]) -> bool:
    """Check if a response node has any status-shaped key."""
    return any(key in node for key in STATUS_KEYS)


def extract_status(node: Dict[str, Any]) -> StatusRecord:
    """Build a StatusRecord from a qualifying fragment."""
    return StatusRecord(
        online=first_value(node, ONLINE_PATHS, to_bool),
        players_online=first_value(node, PLAYERS_ONLINE_PATHS, to_int),
        players_max=first_value(node, PLAYERS_MAX_PATHS, to_int),
        raw=node,
    )


def _walk(node: Any, mapped: Dict[str, StatusRecord], hint: Optional[str]) -> None:
    if isinstance(node, dict):
        address = extract_address(node, hint)
        if address is not None and has_status_data(node):
            mapped[normalize_address(address)] = extract_status(node)

        # Object keys are always strings in decoded JSON, so "0" is a hint too;
        # it fails the address pattern like any other non-address key.
        for key, value in node.items():
            if isinstance(value, (dict, list)):
                _walk(value, mapped, key.strip() if isinstance(key, str) else None)

    elif isinstance(node, list):
        for value in node:
            if isinstance(value, (dict, list)):
                _walk(value, mapped, None)


def walk_response(tree: Any) -> Dict[str, StatusRecord]:
    """Recursively walk a decoded API response and map statuses by address.

    Objects are visited depth-first, parent before children. A later fragment
    for the same normalized address replaces an earlier one.
    """
    mapped: Dict[str, StatusRecord] = {}
    _walk(tree, mapped, None)
    return mapped
