from typing import List, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field, field_validator, ConfigDict

from .services import (
    ArchivedTournament,
    Match,
    Player,
    Scoreboard,
    Side,
    SideView,
    Team,
    TeamStat,
)


def _require_text(value, field_name: str) -> str:
    if not isinstance(value, str):
        raise TypeError(f"{field_name} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValueError(f"{field_name} must not be empty")
    return trimmed


class TeamCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    color: str = Field(default="", max_length=50)
    players: List[str] = Field(..., min_length=1, max_length=4)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _require_text(value, "name")

    @field_validator("players")
    @classmethod
    def _validate_players(cls, value: List[str]) -> List[str]:
        names = [_require_text(name, "player name") for name in value]
        if len({name.lower() for name in names}) != len(names):
            raise ValueError("player names must be unique within a team")
        return names


class TournamentCreate(BaseModel):
    """Schema for starting a best-of-N tournament."""

    teamA: TeamCreate
    teamB: TeamCreate
    bestOf: Optional[int] = None


class GoalCreate(BaseModel):
    side: str


class MatchFinish(BaseModel):
    winner: Literal["A", "B"]


class RematchRequest(BaseModel):
    bestOf: Optional[int] = None


class QueueJoin(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)

    model_config = ConfigDict(extra="forbid")

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: str) -> str:
        return _require_text(value, "name")


class QueueStart(BaseModel):
    bestOf: Optional[int] = None
    shuffle: bool = True


class QueueOut(BaseModel):
    players: List[str]
    size: int
    full: bool
    startedTournament: Optional[str] = None

    @classmethod
    def from_players(
        cls, players: List[Player], size: int, started: Optional[str] = None
    ) -> "QueueOut":
        return cls(
            players=[p.name for p in players],
            size=size,
            full=len(players) >= size,
            startedTournament=started,
        )


class TeamOut(BaseModel):
    name: str
    color: str
    players: List[str]

    @classmethod
    def from_team(cls, team: Team) -> "TeamOut":
        return cls(
            name=team.name,
            color=team.color,
            players=[p.name for p in team.players],
        )


class MatchOut(BaseModel):
    teamA: int
    teamB: int
    winner: Optional[Literal["A", "B"]] = None

    @classmethod
    def from_match(cls, match: Match) -> "MatchOut":
        return cls(
            teamA=match.team_a,
            teamB=match.team_b,
            winner=match.winner.value if match.winner else None,
        )


class WinsOut(BaseModel):
    teamA: int
    teamB: int


class SideOut(BaseModel):
    """Everything shown on one side of the scoreboard."""

    side: Literal["left", "right"]
    team: Literal["A", "B"]
    name: str
    color: str
    players: List[str]
    score: int
    wins: int

    @classmethod
    def from_view(cls, view: SideView) -> "SideOut":
        return cls(
            side=view.side.value,
            team=view.slot.value,
            name=view.team.name,
            color=view.team.color,
            players=[p.name for p in view.team.players],
            score=view.score,
            wins=view.wins,
        )


class ScoreboardOut(BaseModel):
    tournamentId: str
    bestOf: int
    phase: Literal["running", "decided", "cancelled"]
    match: MatchOut
    wins: WinsOut
    left: SideOut
    right: SideOut
    matchWinner: Optional[TeamOut] = None
    seriesFinished: bool = False
    updateInProgress: bool = False

    @classmethod
    def from_scoreboard(cls, board: Scoreboard) -> "ScoreboardOut":
        return cls(
            tournamentId=board.tournament_id,
            bestOf=board.best_of,
            phase=board.phase.value,
            match=MatchOut.from_match(board.match),
            wins=WinsOut(teamA=board.wins.team_a, teamB=board.wins.team_b),
            left=SideOut.from_view(board.sides[Side.LEFT]),
            right=SideOut.from_view(board.sides[Side.RIGHT]),
            matchWinner=TeamOut.from_team(board.match_winner) if board.match_winner else None,
            seriesFinished=board.series_finished,
            updateInProgress=board.update_in_progress,
        )


class FinishMatchOut(BaseModel):
    match: MatchOut
    seriesFinished: bool


class TeamsOut(BaseModel):
    teamA: TeamOut
    teamB: TeamOut


class FinishedTournamentOut(BaseModel):
    """A tournament that was played to the end."""

    id: str
    bestOf: int
    teamA: TeamOut
    teamB: TeamOut
    wins: WinsOut
    winner: Optional[Literal["A", "B"]] = None
    matches: List[MatchOut] = Field(default_factory=list)
    finishedAt: datetime
    nextTournamentId: Optional[str] = None

    @classmethod
    def from_archive(cls, record: ArchivedTournament) -> "FinishedTournamentOut":
        snapshot = record.snapshot
        winner = snapshot.series_winner
        return cls(
            id=snapshot.id,
            bestOf=snapshot.config.best_of,
            teamA=TeamOut.from_team(snapshot.team_a),
            teamB=TeamOut.from_team(snapshot.team_b),
            wins=WinsOut(teamA=snapshot.wins.team_a, teamB=snapshot.wins.team_b),
            winner=winner.value if winner else None,
            matches=[MatchOut.from_match(m) for m in snapshot.finished],
            finishedAt=record.finished_at,
        )


class TeamStatOut(BaseModel):
    name: str
    players: List[str]
    tournamentsPlayed: int
    tournamentsWon: int
    matchesWon: int
    matchesLost: int
    goalsFor: int
    goalsAgainst: int
    crawls: int
    winRate: float

    @classmethod
    def from_stat(cls, stat: TeamStat) -> "TeamStatOut":
        return cls(
            name=stat.name,
            players=list(stat.players),
            tournamentsPlayed=stat.tournaments_played,
            tournamentsWon=stat.tournaments_won,
            matchesWon=stat.matches_won,
            matchesLost=stat.matches_lost,
            goalsFor=stat.goals_for,
            goalsAgainst=stat.goals_against,
            crawls=stat.crawls,
            winRate=round(stat.win_rate, 4),
        )
