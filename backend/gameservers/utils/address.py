"""Server address helpers."""
import re

# host:port as accepted for configured servers and response key hints
ADDRESS_PATTERN = re.compile(r"[A-Za-z0-9._:-]+:[0-9]+")


def normalize_address(address: str) -> str:
    """Normalize host:port for matching."""
    return address.strip().lower()


def is_address(value: str) -> bool:
    """Check whether a string looks like host:port."""
    return ADDRESS_PATTERN.fullmatch(value) is not None
