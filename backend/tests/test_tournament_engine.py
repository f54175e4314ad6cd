import asyncio
import random

import pytest

from kicker.exceptions import (
    Busy,
    InvalidArgument,
    InvalidConfig,
    InvalidState,
    NotInitialized,
    PersistenceError,
)
from kicker.scoring import first_to
from kicker.services import (
    MatchPhase,
    MemoryArchive,
    MemorySnapshotStore,
    MutationSequencer,
    Team,
    TeamSlot,
    TournamentEngine,
)


RED = Team.create("Red Devils", "#d32f2f", ["Alice", "Bob"])
BLUE = Team.create("Blue Whales", "#1976d2", ["Carol", "Dave"])


class GatedStore(MemorySnapshotStore):
    """Suspends every save until the test opens the gate."""

    def __init__(self):
        super().__init__()
        self.gate = asyncio.Event()
        self.gated = False

    async def save(self, snapshot):
        if self.gated:
            await self.gate.wait()
        await super().save(snapshot)


class FlakyStore(MemorySnapshotStore):
    def __init__(self):
        super().__init__()
        self.fail = False

    async def save(self, snapshot):
        if self.fail:
            raise PersistenceError()
        await super().save(snapshot)


def _engine(goals=3, store=None, policy="reject", archive=None):
    return TournamentEngine(
        "channel-1",
        first_to(goals),
        store if store is not None else MemorySnapshotStore(),
        archive=archive if archive is not None else MemoryArchive(),
        sequencer=MutationSequencer(policy),
    )


async def _started(best_of=3, **kwargs):
    engine = _engine(**kwargs)
    await engine.start_tournament(RED, BLUE, best_of)
    return engine


async def _play_match(engine, side, goals=3):
    for _ in range(goals):
        await engine.add_goal(side)
    winner = engine.get_winner()
    return await engine.finish_match(winner)


async def _wait_until(predicate):
    for _ in range(100):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition never became true")


@pytest.mark.anyio
async def test_reads_fail_before_a_tournament_is_started():
    engine = _engine()

    for read in (engine.get_teams, engine.get_running_match, engine.get_wins, engine.get_best_of):
        with pytest.raises(NotInitialized):
            read()
    with pytest.raises(NotInitialized):
        await engine.add_goal("left")
    assert engine.is_update_in_progress() is False


@pytest.mark.anyio
@pytest.mark.parametrize("best_of", [0, -1, 2, 4])
async def test_start_rejects_invalid_best_of(best_of):
    engine = _engine()
    with pytest.raises(InvalidConfig):
        await engine.start_tournament(RED, BLUE, best_of)
    assert engine.is_running() is False


@pytest.mark.anyio
async def test_start_rejects_second_tournament():
    engine = await _started()
    with pytest.raises(InvalidState):
        await engine.start_tournament(RED, BLUE, 3)


@pytest.mark.anyio
async def test_add_goal_credits_the_team_on_that_side():
    engine = await _started(goals=10)

    match = await engine.add_goal("left")
    assert (match.team_a, match.team_b) == (1, 0)

    match = await engine.add_goal("right")
    assert (match.team_a, match.team_b) == (1, 1)
    assert [ev.slot for ev in engine.get_goal_history()] == [TeamSlot.TEAM_A, TeamSlot.TEAM_B]


@pytest.mark.anyio
async def test_add_goal_rejects_unknown_side():
    engine = await _started()
    with pytest.raises(InvalidArgument):
        await engine.add_goal("middle")
    assert engine.get_running_match().is_scoreless


@pytest.mark.anyio
@pytest.mark.parametrize("seed", range(5))
async def test_score_equals_goals_not_undone(seed):
    rng = random.Random(seed)
    engine = await _started(goals=1000)
    applied = []

    for _ in range(60):
        if rng.random() < 0.35:
            await engine.undo()
            if applied:
                applied.pop()
        else:
            side = rng.choice(["left", "right"])
            await engine.add_goal(side)
            applied.append(side)

        match = engine.get_running_match()
        assert match.team_a == applied.count("left")
        assert match.team_b == applied.count("right")
        assert match.team_a >= 0 and match.team_b >= 0


@pytest.mark.anyio
async def test_undo_on_empty_history_is_a_noop():
    store = MemorySnapshotStore()
    engine = await _started(store=store)
    saves = store.saves

    match = await engine.undo()
    match = await engine.undo()

    assert (match.team_a, match.team_b) == (0, 0)
    assert store.saves == saves


@pytest.mark.anyio
async def test_goals_after_the_rule_decided_are_rejected():
    engine = await _started(goals=2)
    await engine.add_goal("left")
    await engine.add_goal("left")

    assert engine.get_winner() == RED
    with pytest.raises(InvalidState):
        await engine.add_goal("right")

    # the scorekeeper may still take back the deciding goal
    await engine.undo()
    assert engine.get_winner() is None


@pytest.mark.anyio
async def test_finish_match_increments_only_the_winner():
    engine = await _started(best_of=5)
    before = engine.get_wins()

    match, finished = await _play_match(engine, "right")

    after = engine.get_wins()
    assert (after.team_a, after.team_b) == (before.team_a, before.team_b + 1)
    assert match.winner is TeamSlot.TEAM_B
    assert finished is False
    assert engine.get_phase() is MatchPhase.DECIDED
    assert engine.get_goal_history() == []


@pytest.mark.anyio
async def test_finish_match_accepts_team_or_slot():
    engine = await _started(goals=100)
    match, _ = await engine.finish_match("A")
    assert match.winner is TeamSlot.TEAM_A

    await engine.new_match()
    with pytest.raises(InvalidArgument):
        await engine.finish_match(Team.create("Strangers", "", ["Eve"]))
    with pytest.raises(InvalidArgument):
        await engine.finish_match("C")


@pytest.mark.anyio
async def test_best_of_three_finishes_exactly_at_two_wins():
    engine = await _started(best_of=3)

    _, finished = await _play_match(engine, "left")
    assert finished is False
    await engine.new_match()

    # teams changed ends: left is now team B
    assert engine.resolve_side("left") is TeamSlot.TEAM_B
    _, finished = await _play_match(engine, "left")
    assert finished is False
    assert (engine.get_wins().team_a, engine.get_wins().team_b) == (1, 1)
    await engine.new_match()

    # back to the starting ends
    _, finished = await _play_match(engine, "left")
    assert finished is True
    assert engine.get_wins().team_a == 2
    assert engine.is_series_finished() is True

    with pytest.raises(InvalidState):
        await engine.new_match()


@pytest.mark.anyio
async def test_best_of_one_scenario():
    archive = MemoryArchive()
    engine = await _started(best_of=1, goals=1, archive=archive)

    await engine.add_goal("left")
    winner = engine.get_winner(engine.get_running_match())
    assert winner == RED

    _, finished = await engine.finish_match(winner)
    assert engine.get_wins().team_a == 1
    assert finished is True

    await engine.finish_tournament()
    with pytest.raises(NotInitialized):
        engine.get_teams()

    history = await archive.history()
    assert [record.snapshot.wins.team_a for record in history] == [1]


@pytest.mark.anyio
async def test_swap_rejected_once_a_goal_was_scored():
    engine = await _started()
    await engine.add_goal("left")

    with pytest.raises(InvalidState):
        await engine.swap_teams()
    assert engine.get_teams() == (RED, BLUE)


@pytest.mark.anyio
async def test_swap_exchanges_teams_and_their_wins():
    engine = await _started(best_of=5)
    await _play_match(engine, "left")
    await engine.new_match()

    teams = await engine.swap_teams()

    assert teams == (BLUE, RED)
    assert engine.get_teams() == (BLUE, RED)
    wins = engine.get_wins()
    assert (wins.team_a, wins.team_b) == (0, 1)
    assert engine.snapshot().finished[0].winner is TeamSlot.TEAM_B


@pytest.mark.anyio
async def test_cancel_match_discards_score_but_keeps_wins():
    engine = await _started(best_of=5)
    await _play_match(engine, "left")
    await engine.new_match()
    await engine.add_goal("left")

    match = await engine.cancel_match()

    assert match.is_scoreless
    assert engine.get_phase() is MatchPhase.CANCELLED
    assert engine.get_wins().team_a == 1
    assert await engine.undo() == match
    with pytest.raises(InvalidState):
        await engine.add_goal("left")

    await engine.new_match()
    assert engine.get_phase() is MatchPhase.RUNNING


@pytest.mark.anyio
async def test_new_match_requires_the_running_match_to_be_settled():
    engine = await _started()
    with pytest.raises(InvalidState):
        await engine.new_match()


@pytest.mark.anyio
async def test_finish_tournament_requires_a_decided_series():
    engine = await _started(best_of=3)
    await _play_match(engine, "left")

    with pytest.raises(InvalidState):
        await engine.finish_tournament()
    assert engine.is_running()


@pytest.mark.anyio
async def test_rematch_archives_and_starts_next_series():
    archive = MemoryArchive()
    engine = await _started(best_of=1, archive=archive)
    first_id = engine.snapshot().id
    await _play_match(engine, "right")

    with pytest.raises(InvalidConfig):
        await engine.rematch(best_of=2)
    snapshot = await engine.rematch(best_of=3)

    assert snapshot.id != first_id
    assert engine.get_best_of() == 3
    assert (engine.get_wins().team_a, engine.get_wins().team_b) == (0, 0)
    assert engine.get_teams() == (RED, BLUE)
    assert [r.snapshot.id for r in await archive.history()] == [first_id]


@pytest.mark.anyio
async def test_cancel_tournament_does_not_archive():
    archive = MemoryArchive()
    engine = await _started(archive=archive)

    assert await engine.cancel_tournament() is True
    assert await engine.cancel_tournament() is False
    assert await archive.history() == []


@pytest.mark.anyio
async def test_failed_save_leaves_committed_state_untouched():
    store = FlakyStore()
    engine = await _started(store=store)
    await engine.add_goal("left")

    store.fail = True
    with pytest.raises(PersistenceError):
        await engine.add_goal("right")
    with pytest.raises(PersistenceError):
        await engine.undo()
    with pytest.raises(PersistenceError):
        await engine.finish_match("A")

    match = engine.get_running_match()
    assert (match.team_a, match.team_b) == (1, 0)
    assert len(engine.get_goal_history()) == 1
    assert engine.get_phase() is MatchPhase.RUNNING
    assert engine.is_update_in_progress() is False

    store.fail = False
    await engine.add_goal("right")
    assert engine.get_running_match().team_b == 1


@pytest.mark.anyio
async def test_concurrent_goal_is_rejected_while_first_is_saving():
    store = GatedStore()
    engine = await _started(goals=10, store=store)
    store.gated = True

    first = asyncio.create_task(engine.add_goal("left"))
    await _wait_until(engine.is_update_in_progress)

    with pytest.raises(Busy):
        await engine.add_goal("left")
    # the suspended write is not visible yet
    assert engine.get_running_match().is_scoreless

    store.gate.set()
    await first
    assert engine.get_running_match().team_a == 1
    assert engine.is_update_in_progress() is False


@pytest.mark.anyio
async def test_concurrent_goals_are_applied_once_each_when_queued():
    store = GatedStore()
    engine = await _started(goals=10, store=store, policy="queue")
    store.gated = True

    tasks = [asyncio.create_task(engine.add_goal("left"))]
    await _wait_until(engine.is_update_in_progress)
    tasks.append(asyncio.create_task(engine.add_goal("right")))
    await asyncio.sleep(0)

    store.gate.set()
    results = await asyncio.gather(*tasks)

    assert [(m.team_a, m.team_b) for m in results] == [(1, 0), (1, 1)]
    assert [ev.side.value for ev in engine.get_goal_history()] == ["left", "right"]


@pytest.mark.anyio
async def test_restore_picks_up_the_committed_snapshot():
    store = MemorySnapshotStore()
    engine = await _started(store=store, best_of=5)
    await _play_match(engine, "left")
    await engine.new_match()
    await engine.add_goal("right")

    restored = _engine(store=store)
    assert await restored.restore() is True

    assert restored.get_teams() == (RED, BLUE)
    assert restored.get_best_of() == 5
    assert restored.get_wins().team_a == 1
    assert restored.get_running_match() == engine.get_running_match()
    assert restored.get_goal_history() == engine.get_goal_history()
    assert restored.snapshot().id == engine.snapshot().id


@pytest.mark.anyio
async def test_start_rejects_a_player_on_both_teams():
    engine = _engine()
    turncoat = Team.create("Green", "#0f0", ["Erin", "alice"])

    with pytest.raises(InvalidArgument) as exc:
        await engine.start_tournament(RED, turncoat, 3)

    assert "alice" in exc.value.detail
    assert engine.is_running() is False


@pytest.mark.anyio
async def test_settle_finishes_the_match_and_opens_the_next_in_one_save():
    store = MemorySnapshotStore()
    engine = await _started(goals=2, store=store)
    await engine.add_goal("left")
    await engine.add_goal("left")
    saves = store.saves

    settled, decided = await engine.settle()

    assert (settled, decided) == (TeamSlot.TEAM_A, False)
    assert store.saves == saves + 1
    assert engine.get_wins().team_a == 1
    assert engine.get_phase() is MatchPhase.RUNNING
    assert engine.get_running_match().is_scoreless
    assert engine.snapshot().finished[0].team_a == 2

    # nothing pending: no save, no change
    assert await engine.settle() == (None, False)
    assert store.saves == saves + 1


@pytest.mark.anyio
async def test_settle_without_next_match_leaves_the_match_decided():
    engine = await _started(goals=2)
    await engine.add_goal("right")
    await engine.add_goal("right")

    assert await engine.settle(start_next=False) == (TeamSlot.TEAM_B, False)
    assert engine.get_phase() is MatchPhase.DECIDED
    assert engine.get_running_match().winner is TeamSlot.TEAM_B


@pytest.mark.anyio
async def test_settle_honours_an_undo_admitted_before_it():
    store = GatedStore()
    engine = await _started(goals=1, store=store, policy="queue")
    store.gated = True

    async def score_and_settle():
        await engine.add_goal("left")
        return await engine.settle()

    first = asyncio.create_task(score_and_settle())
    await _wait_until(engine.is_update_in_progress)
    second = asyncio.create_task(engine.undo())
    await asyncio.sleep(0)

    store.gate.set()
    settled, decided = await first
    await second

    assert (settled, decided) == (None, False)
    wins = engine.get_wins()
    assert (wins.team_a, wins.team_b) == (0, 0)
    assert engine.snapshot().finished == []
    assert engine.get_running_match().is_scoreless
    assert engine.get_phase() is MatchPhase.RUNNING


@pytest.mark.anyio
async def test_failed_settle_can_be_retried():
    store = FlakyStore()
    engine = await _started(goals=2, store=store)
    await engine.add_goal("left")
    await engine.add_goal("left")

    store.fail = True
    with pytest.raises(PersistenceError):
        await engine.settle()
    assert engine.has_unsettled_winner() is True
    assert engine.get_wins().team_a == 0

    store.fail = False
    assert await engine.settle() == (TeamSlot.TEAM_A, False)
    assert engine.has_unsettled_winner() is False
    assert engine.get_wins().team_a == 1
