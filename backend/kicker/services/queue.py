"""Players waiting at the table for the next tournament of a channel.

Once four players queued up, they are split into two teams of two and a
tournament starts.  The queue lives in memory next to the channel's engine.
"""

from __future__ import annotations

import logging
import random
from typing import Optional, Sequence

from ..exceptions import Busy, InvalidArgument, InvalidState, PersistenceError
from .state import Player, Team, TournamentSnapshot
from .tournament import TournamentEngine

logger = logging.getLogger(__name__)

QUEUE_SIZE = 4
TEAM_COLORS = ("#d32f2f", "#1976d2")


class PlayerQueue:
    def __init__(self, size: int = QUEUE_SIZE) -> None:
        self.size = size
        self._players: list[Player] = []

    def players(self) -> list[Player]:
        return list(self._players)

    def is_full(self) -> bool:
        return len(self._players) >= self.size

    def _index(self, name: str) -> int | None:
        key = name.lower()
        for index, player in enumerate(self._players):
            if player.name.lower() == key:
                return index
        return None

    def join(self, name: str) -> Player:
        name = (name or "").strip()
        if not name:
            raise InvalidArgument("player name must not be empty")
        if self._index(name) is not None:
            raise InvalidState(f"{name} is already in the queue")
        if self.is_full():
            raise InvalidState("the queue is full")
        player = Player(name=name)
        self._players.append(player)
        return player

    def remove(self, name: str) -> bool:
        index = self._index(name.strip())
        if index is None:
            return False
        del self._players[index]
        return True

    def reset(self) -> None:
        self._players.clear()

    def discard(self, players: Sequence[Player]) -> None:
        for player in players:
            self.remove(player.name)


def teams_from_players(
    players: Sequence[Player], rng: Optional[random.Random] = None
) -> tuple[Team, Team]:
    """Split four players into two teams; shuffled unless ``rng`` is ``None``."""

    if len(players) != QUEUE_SIZE:
        raise InvalidState(f"a tournament needs {QUEUE_SIZE} players, got {len(players)}")
    lineup = list(players)
    if rng is not None:
        rng.shuffle(lineup)
    half = QUEUE_SIZE // 2
    return tuple(
        Team.create(" & ".join(p.name for p in roster), color, roster)
        for roster, color in ((lineup[:half], TEAM_COLORS[0]), (lineup[half:], TEAM_COLORS[1]))
    )


async def start_from_queue(
    engine: TournamentEngine,
    queue: PlayerQueue,
    best_of: int,
    rng: Optional[random.Random] = None,
) -> TournamentSnapshot:
    """Start a tournament with the queued players and empty the queue.

    The players stay queued when the tournament cannot be started.
    """

    if not queue.is_full():
        raise InvalidState("the queue is not full yet")
    players = queue.players()
    team_a, team_b = teams_from_players(players, rng)
    snapshot = await engine.start_tournament(team_a, team_b, best_of)
    queue.discard(players)
    return snapshot


async def start_if_ready(
    engine: TournamentEngine,
    queue: PlayerQueue,
    best_of: int,
    rng: Optional[random.Random] = None,
) -> TournamentSnapshot | None:
    """Start the next tournament if the queue is full and the table is free."""

    if not queue.is_full() or engine.is_running():
        return None
    try:
        return await start_from_queue(engine, queue, best_of, rng)
    except (Busy, InvalidState, PersistenceError) as exc:
        logger.warning(
            "Queue of channel %s is full but no tournament was started: %s",
            engine.channel_id,
            exc.detail,
        )
        return None
