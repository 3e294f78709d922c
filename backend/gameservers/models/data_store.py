"""DataStoreEntry model - JSON cache entries keyed by name."""
from datetime import datetime
from sqlalchemy import Column, String, Text, DateTime

from ..database import Base


class DataStoreEntry(Base):
    """Cached payloads such as the game catalog and update check."""

    __tablename__ = "data_store"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)  # JSON
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
