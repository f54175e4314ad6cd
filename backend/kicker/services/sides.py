"""Map table sides to teams.

Teams change ends after every completed match: with an even number of matches
played the left side belongs to team A, with an odd number to team B.
"""

from __future__ import annotations

from .state import Side, TeamSlot, WinTally

_IDENTITY = {Side.LEFT: TeamSlot.TEAM_A, Side.RIGHT: TeamSlot.TEAM_B}
_SWAPPED = {Side.LEFT: TeamSlot.TEAM_B, Side.RIGHT: TeamSlot.TEAM_A}


def side_mapping(wins: WinTally) -> dict[Side, TeamSlot]:
    return dict(_IDENTITY if wins.matches_played % 2 == 0 else _SWAPPED)


def resolve_side(side: Side | str, wins: WinTally) -> TeamSlot:
    """Return the team playing on ``side``; raises ``InvalidArgument`` for unknown tokens."""

    return side_mapping(wins)[Side.parse(side)]
