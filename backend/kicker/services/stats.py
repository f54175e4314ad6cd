from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from .persistence import ArchivedTournament
from .state import TeamSlot


@dataclass
class TeamStat:
    """Aggregated results of one line-up across finished tournaments."""

    players: tuple[str, ...]
    name: str
    tournaments_played: int = 0
    tournaments_won: int = 0
    matches_won: int = 0
    matches_lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    crawls: int = 0

    @property
    def matches_played(self) -> int:
        return self.matches_won + self.matches_lost

    @property
    def win_rate(self) -> float:
        if not self.matches_played:
            return 0.0
        return self.matches_won / self.matches_played


def compute_team_stats(history: Iterable[ArchivedTournament]) -> list[TeamStat]:
    """Aggregate finished tournaments per line-up.

    A line-up is identified by its ordered player names, so the same players
    are counted together even if they chose a different team name.  A
    "crawl" is a lost match in which the team did not score at all.
    ``history`` is expected newest first; the newest team name wins.
    """

    stats: dict[tuple[str, ...], TeamStat] = {}

    for record in history:
        snapshot = record.snapshot
        series_winner = snapshot.series_winner
        for slot in (TeamSlot.TEAM_A, TeamSlot.TEAM_B):
            team = snapshot.team(slot)
            key = tuple(p.name for p in team.players)
            stat = stats.get(key)
            if stat is None:
                stat = TeamStat(players=key, name=team.name)
                stats[key] = stat

            stat.tournaments_played += 1
            if series_winner is slot:
                stat.tournaments_won += 1

            for match in snapshot.finished:
                own = match.score(slot)
                other = match.score(slot.other())
                stat.goals_for += own
                stat.goals_against += other
                if match.winner is slot:
                    stat.matches_won += 1
                elif match.winner is not None:
                    stat.matches_lost += 1
                    if own == 0:
                        stat.crawls += 1

    return sorted(
        stats.values(),
        key=lambda s: (-s.tournaments_won, -s.win_rate, s.name.lower()),
    )
