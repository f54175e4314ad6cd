from sqlalchemy import (
    Column,
    String,
    DateTime,
    JSON,
    Integer,
    Index,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from .db import Base


class RunningTournament(Base):
    """The committed snapshot of the series currently played in a channel."""

    __tablename__ = "running_tournament"
    channel_id = Column(String, primary_key=True)
    tournament_id = Column(String, nullable=False)
    snapshot = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )


class FinishedTournament(Base):
    __tablename__ = "finished_tournament"
    id = Column(String, primary_key=True)
    channel_id = Column(String, nullable=False)
    best_of = Column(Integer, nullable=False)
    team_a = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    team_b = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    wins_a = Column(Integer, nullable=False, default=0)
    wins_b = Column(Integer, nullable=False, default=0)
    matches = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("ix_finished_tournament_channel_id", "channel_id", "finished_at"),
    )
