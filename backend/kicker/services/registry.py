from __future__ import annotations

import logging
from asyncio import Lock
from typing import Callable

from ..config import get_mutation_policy, get_storage_backend, get_win_rule
from ..scoring import parse_rule
from .persistence import (
    DatabaseArchive,
    DatabaseSnapshotStore,
    MemoryArchive,
    MemorySnapshotStore,
)
from .queue import PlayerQueue
from .sequencer import MutationSequencer
from .tournament import TournamentEngine

logger = logging.getLogger(__name__)


def build_engine(channel_id: str) -> TournamentEngine:
    """Create an engine for ``channel_id`` from the environment configuration."""

    rule = parse_rule(get_win_rule())
    if get_storage_backend() == "memory":
        store, archive = MemorySnapshotStore(), MemoryArchive()
    else:
        store, archive = DatabaseSnapshotStore(channel_id), DatabaseArchive(channel_id)

    policy = get_mutation_policy()
    logger.info(
        "Creating tournament engine for channel %s (rule=%s, policy=%s)",
        channel_id,
        getattr(rule, "description", rule),
        policy,
    )
    return TournamentEngine(
        channel_id,
        rule,
        store,
        archive=archive,
        sequencer=MutationSequencer(policy),
    )


class TournamentRegistry:
    """One engine and one player queue per channel, created on first use."""

    def __init__(self, factory: Callable[[str], TournamentEngine] = build_engine) -> None:
        self._factory = factory
        self._lock = Lock()
        self._engines: dict[str, TournamentEngine] = {}
        self._queues: dict[str, PlayerQueue] = {}

    async def get(self, channel_id: str) -> TournamentEngine:
        engine = self._engines.get(channel_id)
        if engine is not None:
            return engine

        async with self._lock:
            engine = self._engines.get(channel_id)
            if engine is None:
                engine = self._factory(channel_id)
                await engine.restore()
                self._engines[channel_id] = engine
            return engine

    def queue(self, channel_id: str) -> PlayerQueue:
        return self._queues.setdefault(channel_id, PlayerQueue())

    def clear(self) -> None:
        self._engines.clear()
        self._queues.clear()


registry = TournamentRegistry()
