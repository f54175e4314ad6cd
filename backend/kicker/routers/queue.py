import random

from fastapi import APIRouter, Depends, Path

from ..config import get_default_best_of
from ..schemas import QueueJoin, QueueOut, QueueStart, ScoreboardOut
from ..services import (
    PlayerQueue,
    TournamentEngine,
    build_scoreboard,
    start_from_queue,
    start_if_ready,
)
from ..services.registry import registry
from .tournament import CHANNEL_ID_PATTERN, get_tournament

router = APIRouter()


def get_queue(channel_id: str = Path(..., pattern=CHANNEL_ID_PATTERN)) -> PlayerQueue:
    return registry.queue(channel_id)


def _queue_out(queue: PlayerQueue, started=None) -> QueueOut:
    return QueueOut.from_players(
        queue.players(), queue.size, started.id if started is not None else None
    )


@router.get("/channels/{channel_id}/queue", response_model=QueueOut)
async def list_queue(queue: PlayerQueue = Depends(get_queue)):
    return _queue_out(queue)


@router.post("/channels/{channel_id}/queue", response_model=QueueOut)
async def join_queue(
    body: QueueJoin,
    queue: PlayerQueue = Depends(get_queue),
    engine: TournamentEngine = Depends(get_tournament),
):
    queue.join(body.name)
    started = await start_if_ready(engine, queue, get_default_best_of(), random.Random())
    return _queue_out(queue, started)


@router.delete("/channels/{channel_id}/queue/{player}", response_model=QueueOut)
async def leave_queue(player: str, queue: PlayerQueue = Depends(get_queue)):
    queue.remove(player)
    return _queue_out(queue)


@router.delete("/channels/{channel_id}/queue", response_model=QueueOut)
async def reset_queue(queue: PlayerQueue = Depends(get_queue)):
    queue.reset()
    return _queue_out(queue)


@router.post("/channels/{channel_id}/queue/start", response_model=ScoreboardOut)
async def start_queued_tournament(
    body: QueueStart | None = None,
    queue: PlayerQueue = Depends(get_queue),
    engine: TournamentEngine = Depends(get_tournament),
):
    body = body or QueueStart()
    best_of = body.bestOf if body.bestOf is not None else get_default_best_of()
    await start_from_queue(engine, queue, best_of, random.Random() if body.shuffle else None)
    return ScoreboardOut.from_scoreboard(await build_scoreboard(engine, finalize=False))
