from typing import Optional

from fastapi import APIRouter, Depends, Query

from ..exceptions import http_problem
from ..schemas import FinishedTournamentOut, TeamStatOut
from ..services import TournamentEngine, compute_team_stats
from .tournament import get_tournament

router = APIRouter()


def _archive(engine: TournamentEngine):
    if engine.archive is None:
        raise http_problem(
            status_code=404,
            detail="tournament history is not recorded",
            code="history_unavailable",
        )
    return engine.archive


@router.get(
    "/channels/{channel_id}/tournaments", response_model=list[FinishedTournamentOut]
)
async def list_finished_tournaments(
    last: Optional[int] = Query(default=None, ge=1, le=500),
    engine: TournamentEngine = Depends(get_tournament),
):
    history = await _archive(engine).history(last)
    return [FinishedTournamentOut.from_archive(record) for record in history]


@router.get("/channels/{channel_id}/stats/teams", response_model=list[TeamStatOut])
async def team_stats(engine: TournamentEngine = Depends(get_tournament)):
    history = await _archive(engine).history()
    return [TeamStatOut.from_stat(stat) for stat in compute_team_stats(history)]
