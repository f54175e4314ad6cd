"""The tournament engine: one best-of-N series between two teams.

Every write runs inside the ``MutationSequencer``.  It works on a copy of the
committed snapshot, hands the copy to the ``SnapshotStore`` and only replaces
the committed snapshot once the store succeeded, so a failing write leaves no
trace.  Reads always return copies of the committed snapshot.
"""

from __future__ import annotations

import logging
import uuid
from typing import Awaitable, Callable, Optional, TypeVar

from ..exceptions import InvalidArgument, InvalidState, NotInitialized, PersistenceError
from ..scoring import WinRule
from .persistence import SnapshotStore, TournamentArchive
from .sequencer import MutationSequencer
from .sides import resolve_side
from .state import (
    GoalEvent,
    Match,
    MatchPhase,
    SeriesConfig,
    Side,
    Team,
    TeamSlot,
    TournamentSnapshot,
    WinTally,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class TournamentEngine:
    def __init__(
        self,
        channel_id: str,
        win_rule: WinRule,
        store: SnapshotStore,
        *,
        archive: TournamentArchive | None = None,
        sequencer: MutationSequencer | None = None,
    ) -> None:
        self.channel_id = channel_id
        self.win_rule = win_rule
        self.store = store
        self.archive = archive
        self.sequencer = sequencer or MutationSequencer()
        self._state: TournamentSnapshot | None = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    async def restore(self) -> bool:
        """Load the last committed snapshot from the store."""

        async def operation() -> bool:
            self._state = await self.store.load()
            if self._state is not None:
                logger.info(
                    "Restored tournament %s of channel %s", self._state.id, self.channel_id
                )
            return self._state is not None

        return await self.sequencer.run("restore", operation)

    # ------------------------------------------------------------------
    # reads
    # ------------------------------------------------------------------
    def is_update_in_progress(self) -> bool:
        return self.sequencer.is_update_in_progress()

    def is_running(self) -> bool:
        return self._state is not None

    def _committed(self) -> TournamentSnapshot:
        if self._state is None:
            raise NotInitialized()
        return self._state

    def snapshot(self) -> TournamentSnapshot:
        return self._committed().copy()

    def get_teams(self) -> tuple[Team, Team]:
        state = self._committed()
        return state.team_a, state.team_b

    def get_running_match(self) -> Match:
        return self._committed().match.copy()

    def get_phase(self) -> MatchPhase:
        return self._committed().phase

    def get_goal_history(self) -> list[GoalEvent]:
        return list(self._committed().history)

    def get_wins(self) -> WinTally:
        wins = self._committed().wins
        return WinTally(team_a=wins.team_a, team_b=wins.team_b)

    def get_best_of(self) -> int:
        return self._committed().config.best_of

    def get_winner(self, match: Match | None = None) -> Team | None:
        """Apply the match-winning rule to ``match`` (default: the running match)."""

        state = self._committed()
        slot = self._rule_winner(match if match is not None else state.match)
        return state.team(slot) if slot else None

    def is_series_finished(self) -> bool:
        return self._committed().series_winner is not None

    def resolve_side(self, side: Side | str) -> TeamSlot:
        return resolve_side(side, self._committed().wins)

    def _rule_winner(self, match: Match) -> TeamSlot | None:
        code = self.win_rule(match.team_a, match.team_b)
        return TeamSlot(code) if code else None

    # ------------------------------------------------------------------
    # writes
    # ------------------------------------------------------------------
    async def _mutate(self, name: str, operation: Callable[[], Awaitable[T]]) -> T:
        return await self.sequencer.run(name, operation)

    async def _commit(self, draft: TournamentSnapshot | None) -> None:
        try:
            await self.store.save(draft)
        except PersistenceError:
            logger.error("Discarding uncommitted change of channel %s", self.channel_id)
            raise
        self._state = draft

    def _draft(self) -> TournamentSnapshot:
        return self._committed().copy()

    @staticmethod
    def _require_running(draft: TournamentSnapshot) -> None:
        if draft.phase is not MatchPhase.RUNNING:
            raise InvalidState(f"no match is running (match is {draft.phase.value})")

    async def start_tournament(
        self, team_a: Team, team_b: Team, best_of: int
    ) -> TournamentSnapshot:
        config = SeriesConfig.create(best_of)
        if team_a == team_b:
            raise InvalidArgument("a team cannot play against itself")
        shared = team_a.shared_players(team_b)
        if shared:
            raise InvalidArgument(f"players cannot be on both teams: {', '.join(shared)}")

        async def operation() -> TournamentSnapshot:
            if self._state is not None:
                raise InvalidState("a tournament is already running")
            draft = TournamentSnapshot(
                id=uuid.uuid4().hex,
                channel_id=self.channel_id,
                team_a=team_a,
                team_b=team_b,
                config=config,
            )
            await self._commit(draft)
            logger.info(
                "Started best of %d tournament %s in channel %s: %s vs. %s",
                best_of,
                draft.id,
                self.channel_id,
                team_a.name,
                team_b.name,
            )
            return draft.copy()

        return await self._mutate("start_tournament", operation)

    async def add_goal(self, side: Side | str) -> Match:
        side = Side.parse(side)

        async def operation() -> Match:
            draft = self._draft()
            self._require_running(draft)
            if self._rule_winner(draft.match) is not None:
                raise InvalidState("the match is already decided")
            slot = resolve_side(side, draft.wins)
            draft.match.add(slot, 1)
            draft.history.append(GoalEvent(slot=slot, side=side))
            await self._commit(draft)
            return draft.match.copy()

        return await self._mutate("add_goal", operation)

    async def undo(self) -> Match:
        async def operation() -> Match:
            draft = self._draft()
            if not draft.history:
                return draft.match.copy()
            event = draft.history.pop()
            draft.match.add(event.slot, -1)
            await self._commit(draft)
            return draft.match.copy()

        return await self._mutate("undo", operation)

    async def swap_teams(self) -> tuple[Team, Team]:
        async def operation() -> tuple[Team, Team]:
            draft = self._draft()
            if not draft.match.is_scoreless:
                raise InvalidState("teams cannot be swapped once a goal was scored")
            draft.team_a, draft.team_b = draft.team_b, draft.team_a
            draft.wins = draft.wins.swapped()
            draft.finished = [m.swapped() for m in draft.finished]
            await self._commit(draft)
            return draft.team_a, draft.team_b

        return await self._mutate("swap_teams", operation)

    async def cancel_match(self) -> Match:
        async def operation() -> Match:
            draft = self._draft()
            self._require_running(draft)
            draft.match = Match()
            draft.history = []
            draft.phase = MatchPhase.CANCELLED
            await self._commit(draft)
            return draft.match.copy()

        return await self._mutate("cancel_match", operation)

    async def finish_match(self, winner: Team | TeamSlot | str) -> tuple[Match, bool]:
        """Fold the running match into the series.

        Returns the frozen match and whether the series is decided now.
        """

        async def operation() -> tuple[Match, bool]:
            draft = self._draft()
            self._require_running(draft)
            slot = self._winner_slot(draft, winner)
            self._fold_match(draft, slot)
            await self._commit(draft)
            finished = self._log_series_winner(draft, slot)
            return draft.match.copy(), finished

        return await self._mutate("finish_match", operation)

    def has_unsettled_winner(self) -> bool:
        """True when the rule decided the running match but it was not finished yet."""

        state = self._committed()
        return state.phase is MatchPhase.RUNNING and self._rule_winner(state.match) is not None

    async def settle(self, *, start_next: bool = True) -> tuple[TeamSlot | None, bool]:
        """Finish the running match if the rule decided it, in a single update.

        The rule is applied to the match as it stands once the update is
        admitted, so a goal undone in the meantime is honoured.  Unless the
        series is decided, ``start_next`` opens the next match in the same
        save.  Returns the slot that won the settled match (``None`` if there
        was nothing to settle) and whether the series is decided.  Calling it
        again is harmless: nothing is saved unless a decided match is pending.
        """

        if not self.has_unsettled_winner():
            return None, self.is_series_finished()

        async def operation() -> tuple[TeamSlot | None, bool]:
            draft = self._draft()
            slot = self._rule_winner(draft.match)
            if draft.phase is not MatchPhase.RUNNING or slot is None:
                return None, draft.series_winner is not None
            self._fold_match(draft, slot)
            decided = draft.series_winner is not None
            if start_next and not decided:
                self._open_match(draft)
            await self._commit(draft)
            logger.info(
                "Settled match of tournament %s for team %s",
                draft.id,
                draft.team(slot).name,
            )
            return slot, self._log_series_winner(draft, slot)

        return await self._mutate("settle", operation)

    @staticmethod
    def _fold_match(draft: TournamentSnapshot, slot: TeamSlot) -> None:
        draft.match.winner = slot
        draft.wins.record(slot)
        draft.finished.append(draft.match.copy())
        draft.history = []
        draft.phase = MatchPhase.DECIDED

    @staticmethod
    def _open_match(draft: TournamentSnapshot) -> None:
        draft.match = Match()
        draft.history = []
        draft.phase = MatchPhase.RUNNING

    @staticmethod
    def _log_series_winner(draft: TournamentSnapshot, slot: TeamSlot) -> bool:
        if draft.series_winner is None:
            return False
        logger.info(
            "Team %s won tournament %s %d:%d",
            draft.team(slot).name,
            draft.id,
            draft.wins.wins(slot),
            draft.wins.wins(slot.other()),
        )
        return True

    @staticmethod
    def _winner_slot(
        state: TournamentSnapshot, winner: Team | TeamSlot | str
    ) -> TeamSlot:
        if isinstance(winner, Team):
            slot = state.slot_of(winner)
            if slot is None:
                raise InvalidArgument(f"team {winner.name!r} does not play this tournament")
            return slot
        try:
            return TeamSlot(winner)
        except ValueError:
            raise InvalidArgument(f"unknown team: {winner!r}")

    async def new_match(self) -> Match:
        async def operation() -> Match:
            draft = self._draft()
            if draft.phase is MatchPhase.RUNNING:
                raise InvalidState("the running match has to be finished or cancelled first")
            if draft.series_winner is not None:
                raise InvalidState("the tournament is decided, no more matches can be played")
            self._open_match(draft)
            await self._commit(draft)
            return draft.match.copy()

        return await self._mutate("new_match", operation)

    async def _archive_decided(self, state: TournamentSnapshot) -> None:
        if state.phase is MatchPhase.RUNNING or state.series_winner is None:
            raise InvalidState("the tournament is not decided yet")
        if self.archive is not None:
            await self.archive.record(state)

    async def finish_tournament(self) -> TournamentSnapshot:
        """Archive the decided series and tear down the running state."""

        async def operation() -> TournamentSnapshot:
            state = self._committed()
            await self._archive_decided(state)
            await self._commit(None)
            logger.info("Finished tournament %s of channel %s", state.id, self.channel_id)
            return state.copy()

        return await self._mutate("finish_tournament", operation)

    async def rematch(self, best_of: Optional[int] = None) -> TournamentSnapshot:
        """Archive the decided series and start the next one between the same teams."""

        async def operation() -> TournamentSnapshot:
            state = self._committed()
            config = SeriesConfig.create(best_of) if best_of is not None else state.config
            await self._archive_decided(state)
            draft = TournamentSnapshot(
                id=uuid.uuid4().hex,
                channel_id=self.channel_id,
                team_a=state.team_a,
                team_b=state.team_b,
                config=config,
            )
            await self._commit(draft)
            logger.info(
                "Tournament %s followed by best of %d rematch %s",
                state.id,
                config.best_of,
                draft.id,
            )
            return draft.copy()

        return await self._mutate("rematch", operation)

    async def cancel_tournament(self) -> bool:
        """Drop the running series without archiving it."""

        async def operation() -> bool:
            if self._state is None:
                return False
            tournament_id = self._state.id
            await self._commit(None)
            logger.info("Cancelled tournament %s of channel %s", tournament_id, self.channel_id)
            return True

        return await self._mutate("cancel_tournament", operation)
