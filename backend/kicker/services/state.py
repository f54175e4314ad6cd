"""Value types making up the state of a running tournament."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Sequence

from ..exceptions import InvalidArgument, InvalidConfig


class TeamSlot(str, Enum):
    """One of the two fixed team positions of a series."""

    TEAM_A = "A"
    TEAM_B = "B"

    def other(self) -> "TeamSlot":
        return TeamSlot.TEAM_B if self is TeamSlot.TEAM_A else TeamSlot.TEAM_A


class Side(str, Enum):
    """A side of the table as seen by the scorekeeper."""

    LEFT = "left"
    RIGHT = "right"

    @classmethod
    def parse(cls, token: "Side | str") -> "Side":
        if isinstance(token, Side):
            return token
        value = token.strip().lower() if isinstance(token, str) else token
        try:
            return cls(value)
        except ValueError:
            raise InvalidArgument(f"unknown side: {token!r}")


class MatchPhase(str, Enum):
    RUNNING = "running"
    DECIDED = "decided"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class Player:
    name: str


@dataclass(frozen=True)
class Team:
    name: str
    color: str
    players: tuple[Player, ...] = ()

    @classmethod
    def create(cls, name: str, color: str, players: Sequence[str | Player]) -> "Team":
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("team name must not be empty")
        roster = tuple(p if isinstance(p, Player) else Player(name=p) for p in players)
        if not roster:
            raise InvalidArgument(f"team {name!r} needs at least one player")
        return cls(name=name, color=color, players=roster)

    def shared_players(self, other: "Team") -> list[str]:
        """Names (case-insensitive) that appear in both rosters."""

        mine = {p.name.lower() for p in self.players}
        return [p.name for p in other.players if p.name.lower() in mine]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "color": self.color,
            "players": [p.name for p in self.players],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Team":
        return cls(
            name=data["name"],
            color=data.get("color", ""),
            players=tuple(Player(name=n) for n in data.get("players", [])),
        )


@dataclass
class Match:
    team_a: int = 0
    team_b: int = 0
    winner: TeamSlot | None = None

    def score(self, slot: TeamSlot) -> int:
        return self.team_a if slot is TeamSlot.TEAM_A else self.team_b

    def add(self, slot: TeamSlot, delta: int) -> None:
        if slot is TeamSlot.TEAM_A:
            self.team_a = max(0, self.team_a + delta)
        else:
            self.team_b = max(0, self.team_b + delta)

    def copy(self) -> "Match":
        return Match(team_a=self.team_a, team_b=self.team_b, winner=self.winner)

    def swapped(self) -> "Match":
        return Match(
            team_a=self.team_b,
            team_b=self.team_a,
            winner=self.winner.other() if self.winner else None,
        )

    @property
    def is_scoreless(self) -> bool:
        return self.team_a == 0 and self.team_b == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "teamA": self.team_a,
            "teamB": self.team_b,
            "winner": self.winner.value if self.winner else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Match":
        winner = data.get("winner")
        return cls(
            team_a=int(data.get("teamA", 0)),
            team_b=int(data.get("teamB", 0)),
            winner=TeamSlot(winner) if winner else None,
        )


@dataclass(frozen=True)
class GoalEvent:
    slot: TeamSlot
    side: Side


@dataclass
class WinTally:
    team_a: int = 0
    team_b: int = 0

    @property
    def matches_played(self) -> int:
        return self.team_a + self.team_b

    def wins(self, slot: TeamSlot) -> int:
        return self.team_a if slot is TeamSlot.TEAM_A else self.team_b

    def record(self, slot: TeamSlot) -> None:
        if slot is TeamSlot.TEAM_A:
            self.team_a += 1
        else:
            self.team_b += 1

    def swapped(self) -> "WinTally":
        return WinTally(team_a=self.team_b, team_b=self.team_a)


@dataclass(frozen=True)
class SeriesConfig:
    best_of: int

    @classmethod
    def create(cls, best_of: int) -> "SeriesConfig":
        if isinstance(best_of, bool) or not isinstance(best_of, int):
            raise InvalidConfig("best_of must be an integer")
        if best_of < 1:
            raise InvalidConfig("best_of must be positive")
        if best_of % 2 == 0:
            raise InvalidConfig("best_of must be odd")
        return cls(best_of=best_of)

    def winner(self, wins: WinTally) -> TeamSlot | None:
        # more than half of best_of, written without float division
        if wins.team_a * 2 > self.best_of:
            return TeamSlot.TEAM_A
        if wins.team_b * 2 > self.best_of:
            return TeamSlot.TEAM_B
        return None


@dataclass
class TournamentSnapshot:
    """Everything a running series consists of; persisted as one document."""

    id: str
    channel_id: str
    team_a: Team
    team_b: Team
    config: SeriesConfig
    match: Match = field(default_factory=Match)
    phase: MatchPhase = MatchPhase.RUNNING
    history: list[GoalEvent] = field(default_factory=list)
    wins: WinTally = field(default_factory=WinTally)
    finished: list[Match] = field(default_factory=list)

    def team(self, slot: TeamSlot) -> Team:
        return self.team_a if slot is TeamSlot.TEAM_A else self.team_b

    def slot_of(self, team: Team) -> TeamSlot | None:
        if team == self.team_a:
            return TeamSlot.TEAM_A
        if team == self.team_b:
            return TeamSlot.TEAM_B
        return None

    @property
    def series_winner(self) -> TeamSlot | None:
        return self.config.winner(self.wins)

    def copy(self) -> "TournamentSnapshot":
        return copy.deepcopy(self)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "channelId": self.channel_id,
            "teamA": self.team_a.to_dict(),
            "teamB": self.team_b.to_dict(),
            "bestOf": self.config.best_of,
            "match": self.match.to_dict(),
            "phase": self.phase.value,
            "history": [
                {"slot": ev.slot.value, "side": ev.side.value} for ev in self.history
            ],
            "wins": {"teamA": self.wins.team_a, "teamB": self.wins.team_b},
            "finished": [m.to_dict() for m in self.finished],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TournamentSnapshot":
        wins = data.get("wins") or {}
        return cls(
            id=data["id"],
            channel_id=data["channelId"],
            team_a=Team.from_dict(data["teamA"]),
            team_b=Team.from_dict(data["teamB"]),
            config=SeriesConfig.create(int(data["bestOf"])),
            match=Match.from_dict(data.get("match") or {}),
            phase=MatchPhase(data.get("phase", MatchPhase.RUNNING.value)),
            history=[
                GoalEvent(slot=TeamSlot(ev["slot"]), side=Side(ev["side"]))
                for ev in data.get("history", [])
            ],
            wins=WinTally(
                team_a=int(wins.get("teamA", 0)), team_b=int(wins.get("teamB", 0))
            ),
            finished=[Match.from_dict(m) for m in data.get("finished", [])],
        )
