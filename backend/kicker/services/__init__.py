"""The tournament core: state, side allocation, sequencing and storage."""

from .persistence import (
    ArchivedTournament,
    DatabaseArchive,
    DatabaseSnapshotStore,
    MemoryArchive,
    MemorySnapshotStore,
)
from .queue import PlayerQueue, start_from_queue, start_if_ready, teams_from_players
from .scoreboard import Scoreboard, SideView, build_scoreboard
from .sequencer import MutationSequencer
from .sides import resolve_side, side_mapping
from .state import (
    GoalEvent,
    Match,
    MatchPhase,
    Player,
    SeriesConfig,
    Side,
    Team,
    TeamSlot,
    TournamentSnapshot,
    WinTally,
)
from .stats import TeamStat, compute_team_stats
from .tournament import TournamentEngine

__all__ = [
    "ArchivedTournament",
    "DatabaseArchive",
    "DatabaseSnapshotStore",
    "GoalEvent",
    "Match",
    "MatchPhase",
    "MemoryArchive",
    "MemorySnapshotStore",
    "MutationSequencer",
    "Player",
    "PlayerQueue",
    "Scoreboard",
    "SeriesConfig",
    "Side",
    "SideView",
    "Team",
    "TeamSlot",
    "TeamStat",
    "TournamentEngine",
    "TournamentSnapshot",
    "WinTally",
    "build_scoreboard",
    "compute_team_stats",
    "resolve_side",
    "side_mapping",
    "start_from_queue",
    "start_if_ready",
    "teams_from_players",
]
