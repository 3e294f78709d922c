"""Game server status tracker backed by the GameQuery API."""

__version__ = "1.0.11"

# Numeric form of __version__, compared against the update feed's longversion
LONG_VERSION = 10011
