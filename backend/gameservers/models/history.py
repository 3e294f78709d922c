"""ServerHistory model - hourly samples for player charts."""
from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship

from ..database import Base


class ServerHistory(Base):
    """One sample per server per hour - rolling 30-day history."""

    __tablename__ = "game_server_history"
    __table_args__ = (
        UniqueConstraint("server_id", "recorded_hour", name="uq_history_server_hour"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    server_id = Column(Integer, ForeignKey("game_servers.id", ondelete="CASCADE"), nullable=False)
    recorded_hour = Column(DateTime, nullable=False, index=True)  # UTC, floored to the hour
    online = Column(Boolean, nullable=True)
    players_online = Column(Integer, nullable=True)
    players_max = Column(Integer, nullable=True)

    # Relationship
    server = relationship("GameServer", back_populates="history")
