"""Settings model - key-value store for global configuration."""
from datetime import datetime
from sqlalchemy import Column, String, DateTime

from ..database import Base


class Setting(Base):
    """Global settings stored as key-value pairs."""

    __tablename__ = "settings"

    key = Column(String, primary_key=True)
    value = Column(String, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


# Default settings
DEFAULT_SETTINGS = {
    # GameQuery API credentials
    "gq_api_token": "",
    "gq_api_token_type": "FREE",
    "gq_api_token_email": "",

    # Refresh settings
    "gq_refresh_minutes": "5",  # Minutes between refresh cycles (1-60)
    "gq_last_refresh": "0",  # Epoch seconds of last successful cycle

    # Game profiles: JSON object keyed by game id
    "gq_game_profiles": "",
}
