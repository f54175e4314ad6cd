"""Build the per-side view the scorekeeper looks at."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..exceptions import Busy, PersistenceError
from .sides import side_mapping
from .state import Match, MatchPhase, Side, Team, TeamSlot, WinTally
from .tournament import TournamentEngine

logger = logging.getLogger(__name__)


@dataclass
class SideView:
    side: Side
    slot: TeamSlot
    team: Team
    score: int
    wins: int


@dataclass
class Scoreboard:
    tournament_id: str
    best_of: int
    phase: MatchPhase
    match: Match
    wins: WinTally
    sides: dict[Side, SideView] = field(default_factory=dict)
    match_winner: Team | None = None
    series_finished: bool = False
    update_in_progress: bool = False


async def build_scoreboard(engine: TournamentEngine, *, finalize: bool = True) -> Scoreboard:
    """Read the running tournament and, if ``finalize`` is set, settle a won match.

    Settling is one engine update, so it sees every goal and undo admitted
    before it.  When it cannot be done right now (another update holds the
    sequencer or the store is down) the board is built from the unsettled
    state and the next finalizing call tries again.
    """

    engine.get_teams()
    settled: TeamSlot | None = None
    if finalize:
        try:
            settled, _ = await engine.settle()
        except (Busy, PersistenceError) as exc:
            logger.warning(
                "Match of channel %s is decided but not settled yet: %s",
                engine.channel_id,
                exc.detail,
            )

    state = engine.snapshot()
    winner: Team | None = None
    if settled is not None:
        winner = state.team(settled)
    elif state.phase is MatchPhase.RUNNING:
        winner = engine.get_winner(state.match)
    elif state.phase is MatchPhase.DECIDED and state.match.winner is not None:
        winner = state.team(state.match.winner)
    series_finished = state.series_winner is not None

    sides = {
        side: SideView(
            side=side,
            slot=slot,
            team=state.team(slot),
            score=state.match.score(slot),
            wins=state.wins.wins(slot),
        )
        for side, slot in side_mapping(state.wins).items()
    }
    return Scoreboard(
        tournament_id=state.id,
        best_of=state.config.best_of,
        phase=state.phase,
        match=state.match,
        wins=state.wins,
        sides=sides,
        match_winner=winner,
        series_finished=series_finished,
        update_in_progress=engine.is_update_in_progress(),
    )
