"""GameServer model - configured game servers and their last known status."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, Boolean, DateTime
from sqlalchemy.orm import relationship

from ..database import Base


class GameServer(Base):
    """A monitored game server endpoint (game id + host:port)."""

    __tablename__ = "game_servers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False, default="")
    game_id = Column(String(40), nullable=False)  # GameQuery game identifier, e.g. minecraft
    address = Column(String(120), nullable=False)  # host:port
    enabled = Column(Integer, default=1)

    # Runtime status, written only by the updater
    online = Column(Boolean, nullable=True)  # NULL = never checked
    players_online = Column(Integer, nullable=True)
    players_max = Column(Integer, nullable=True)
    status_json = Column(Text, nullable=True)  # Last raw status fragment
    last_checked = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    history = relationship("ServerHistory", back_populates="server", cascade="all, delete-orphan")
