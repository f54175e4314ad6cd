import random

from fastapi import APIRouter, Depends, Path, Query

from ..config import get_default_best_of
from ..schemas import (
    FinishedTournamentOut,
    FinishMatchOut,
    GoalCreate,
    MatchFinish,
    MatchOut,
    RematchRequest,
    ScoreboardOut,
    TeamOut,
    TeamsOut,
    TournamentCreate,
)
from ..services import (
    ArchivedTournament,
    Team,
    TournamentEngine,
    build_scoreboard,
    start_if_ready,
)
from ..services.registry import registry
from ..time_utils import utcnow

router = APIRouter()

CHANNEL_ID_PATTERN = r"^[A-Za-z0-9_-]{1,64}$"


async def get_tournament(
    channel_id: str = Path(..., pattern=CHANNEL_ID_PATTERN),
) -> TournamentEngine:
    return await registry.get(channel_id)


async def _scoreboard(engine: TournamentEngine, *, finalize: bool = True) -> ScoreboardOut:
    return ScoreboardOut.from_scoreboard(await build_scoreboard(engine, finalize=finalize))


@router.post("/channels/{channel_id}/tournament", response_model=ScoreboardOut)
async def start_tournament(
    body: TournamentCreate, engine: TournamentEngine = Depends(get_tournament)
):
    best_of = body.bestOf if body.bestOf is not None else get_default_best_of()
    team_a = Team.create(body.teamA.name, body.teamA.color, body.teamA.players)
    team_b = Team.create(body.teamB.name, body.teamB.color, body.teamB.players)
    await engine.start_tournament(team_a, team_b, best_of)
    return await _scoreboard(engine, finalize=False)


@router.get("/channels/{channel_id}/tournament", response_model=ScoreboardOut)
async def get_scoreboard(engine: TournamentEngine = Depends(get_tournament)):
    return await _scoreboard(engine)


@router.delete("/channels/{channel_id}/tournament")
async def cancel_tournament(engine: TournamentEngine = Depends(get_tournament)):
    return {"cancelled": await engine.cancel_tournament()}


@router.get("/channels/{channel_id}/tournament/teams", response_model=TeamsOut)
async def get_teams(engine: TournamentEngine = Depends(get_tournament)):
    team_a, team_b = engine.get_teams()
    return TeamsOut(teamA=TeamOut.from_team(team_a), teamB=TeamOut.from_team(team_b))


@router.post("/channels/{channel_id}/tournament/goals", response_model=ScoreboardOut)
async def add_goal(body: GoalCreate, engine: TournamentEngine = Depends(get_tournament)):
    await engine.add_goal(body.side)
    return await _scoreboard(engine)


@router.post("/channels/{channel_id}/tournament/undo", response_model=ScoreboardOut)
async def undo_goal(engine: TournamentEngine = Depends(get_tournament)):
    await engine.undo()
    return await _scoreboard(engine)


@router.post("/channels/{channel_id}/tournament/swap", response_model=ScoreboardOut)
async def swap_teams(engine: TournamentEngine = Depends(get_tournament)):
    await engine.swap_teams()
    return await _scoreboard(engine, finalize=False)


@router.post(
    "/channels/{channel_id}/tournament/match/cancel", response_model=ScoreboardOut
)
async def cancel_match(engine: TournamentEngine = Depends(get_tournament)):
    await engine.cancel_match()
    return await _scoreboard(engine, finalize=False)


@router.post(
    "/channels/{channel_id}/tournament/match/finish", response_model=FinishMatchOut
)
async def finish_match(body: MatchFinish, engine: TournamentEngine = Depends(get_tournament)):
    match, series_finished = await engine.finish_match(body.winner)
    return FinishMatchOut(match=MatchOut.from_match(match), seriesFinished=series_finished)


@router.post("/channels/{channel_id}/tournament/match", response_model=ScoreboardOut)
async def new_match(engine: TournamentEngine = Depends(get_tournament)):
    await engine.new_match()
    return await _scoreboard(engine, finalize=False)


@router.post(
    "/channels/{channel_id}/tournament/finish", response_model=FinishedTournamentOut
)
async def finish_tournament(
    channel_id: str,
    autoStart: bool = Query(True),
    engine: TournamentEngine = Depends(get_tournament),
):
    snapshot = await engine.finish_tournament()
    out = FinishedTournamentOut.from_archive(
        ArchivedTournament(snapshot=snapshot, finished_at=utcnow())
    )
    if autoStart:
        queue = registry.queue(channel_id)
        started = await start_if_ready(engine, queue, get_default_best_of(), random.Random())
        out.nextTournamentId = started.id if started is not None else None
    return out


@router.post("/channels/{channel_id}/tournament/rematch", response_model=ScoreboardOut)
async def rematch(
    body: RematchRequest | None = None,
    engine: TournamentEngine = Depends(get_tournament),
):
    await engine.rematch(body.bestOf if body else None)
    return await _scoreboard(engine, finalize=False)
