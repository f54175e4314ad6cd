"""Storage collaborators of the tournament engine.

``SnapshotStore`` keeps the committed state of the running series of one
channel, ``TournamentArchive`` the series that were played to the end.
Implementations raise ``PersistenceError`` when the underlying storage fails.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from .. import db
from ..exceptions import PersistenceError
from ..models import FinishedTournament, RunningTournament
from ..time_utils import coerce_utc, utcnow
from .state import (
    Match,
    MatchPhase,
    SeriesConfig,
    Team,
    TournamentSnapshot,
    WinTally,
)

logger = logging.getLogger(__name__)


@dataclass
class ArchivedTournament:
    snapshot: TournamentSnapshot
    finished_at: datetime


class SnapshotStore(Protocol):
    async def save(self, snapshot: TournamentSnapshot | None) -> None:
        """Persist ``snapshot``; ``None`` removes the stored series."""

    async def load(self) -> TournamentSnapshot | None:
        ...


class TournamentArchive(Protocol):
    async def record(self, snapshot: TournamentSnapshot) -> None:
        """Store a finished series. Recording the same tournament id twice overwrites it."""

    async def history(self, last: Optional[int] = None) -> list[ArchivedTournament]:
        ...


class MemorySnapshotStore:
    """Keeps the serialized snapshot in process memory."""

    def __init__(self) -> None:
        self._document: dict | None = None
        self.saves = 0

    async def save(self, snapshot: TournamentSnapshot | None) -> None:
        self._document = snapshot.to_dict() if snapshot is not None else None
        self.saves += 1

    async def load(self) -> TournamentSnapshot | None:
        if self._document is None:
            return None
        return TournamentSnapshot.from_dict(self._document)


class MemoryArchive:
    def __init__(self) -> None:
        self._records: dict[str, tuple[int, ArchivedTournament]] = {}
        self._sequence = 0

    async def record(self, snapshot: TournamentSnapshot) -> None:
        self._sequence += 1
        self._records[snapshot.id] = (
            self._sequence,
            ArchivedTournament(snapshot=snapshot.copy(), finished_at=utcnow()),
        )

    async def history(self, last: Optional[int] = None) -> list[ArchivedTournament]:
        ordered = sorted(self._records.values(), key=lambda item: item[0], reverse=True)
        rows = [record for _, record in ordered]
        return rows[:last] if last is not None else rows


class DatabaseSnapshotStore:
    """Stores the running series of a channel in the ``running_tournament`` table."""

    def __init__(self, channel_id: str, session_factory: sessionmaker | None = None) -> None:
        self.channel_id = channel_id
        self._session_factory = session_factory

    def _sessions(self) -> sessionmaker:
        return self._session_factory or db.get_sessionmaker()

    async def save(self, snapshot: TournamentSnapshot | None) -> None:
        try:
            async with self._sessions()() as session:
                if snapshot is None:
                    await session.execute(
                        delete(RunningTournament).where(
                            RunningTournament.channel_id == self.channel_id
                        )
                    )
                else:
                    await session.merge(
                        RunningTournament(
                            channel_id=self.channel_id,
                            tournament_id=snapshot.id,
                            snapshot=snapshot.to_dict(),
                            updated_at=utcnow(),
                        )
                    )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to store tournament of channel %s", self.channel_id, exc_info=exc
            )
            raise PersistenceError() from exc

    async def load(self) -> TournamentSnapshot | None:
        try:
            async with self._sessions()() as session:
                row = await session.get(RunningTournament, self.channel_id)
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to load tournament of channel %s", self.channel_id, exc_info=exc
            )
            raise PersistenceError("tournament state could not be loaded") from exc
        if row is None:
            return None
        return TournamentSnapshot.from_dict(row.snapshot)


class DatabaseArchive:
    def __init__(self, channel_id: str, session_factory: sessionmaker | None = None) -> None:
        self.channel_id = channel_id
        self._session_factory = session_factory

    def _sessions(self) -> sessionmaker:
        return self._session_factory or db.get_sessionmaker()

    async def record(self, snapshot: TournamentSnapshot) -> None:
        try:
            async with self._sessions()() as session:
                await session.merge(
                    FinishedTournament(
                        id=snapshot.id,
                        channel_id=snapshot.channel_id,
                        best_of=snapshot.config.best_of,
                        team_a=snapshot.team_a.to_dict(),
                        team_b=snapshot.team_b.to_dict(),
                        wins_a=snapshot.wins.team_a,
                        wins_b=snapshot.wins.team_b,
                        matches=[m.to_dict() for m in snapshot.finished],
                        finished_at=utcnow(),
                    )
                )
                await session.commit()
        except SQLAlchemyError as exc:
            logger.error("Failed to archive tournament %s", snapshot.id, exc_info=exc)
            raise PersistenceError("finished tournament could not be archived") from exc

    async def history(self, last: Optional[int] = None) -> list[ArchivedTournament]:
        stmt = (
            select(FinishedTournament)
            .where(FinishedTournament.channel_id == self.channel_id)
            .order_by(FinishedTournament.finished_at.desc())
        )
        if last is not None:
            stmt = stmt.limit(last)
        try:
            async with self._sessions()() as session:
                rows = (await session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            logger.error(
                "Failed to read tournament history of channel %s",
                self.channel_id,
                exc_info=exc,
            )
            raise PersistenceError("tournament history could not be loaded") from exc
        return [_archived_from_row(row) for row in rows]


def _archived_from_row(row: FinishedTournament) -> ArchivedTournament:
    config = SeriesConfig.create(row.best_of)
    finished = [Match.from_dict(m) for m in row.matches or []]
    snapshot = TournamentSnapshot(
        id=row.id,
        channel_id=row.channel_id,
        team_a=Team.from_dict(row.team_a),
        team_b=Team.from_dict(row.team_b),
        config=config,
        match=finished[-1] if finished else Match(),
        phase=MatchPhase.DECIDED,
        wins=WinTally(team_a=row.wins_a, team_b=row.wins_b),
        finished=finished,
    )
    return ArchivedTournament(snapshot=snapshot, finished_at=coerce_utc(row.finished_at))
