"""Goal based match-winning rules.

A rule is a callable ``rule(score_a, score_b)`` returning ``"A"``, ``"B"`` or
``None`` while the match is still undecided.  Rules are built from a short
textual configuration such as ``first_to:10`` or ``win_by:10:2``.
"""

from typing import Callable, Dict, Optional

from ..exceptions import InvalidConfig

WinRule = Callable[[int, int], Optional[str]]


def _positive(value: int, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfig(f"{name} must be a positive integer")
    return value


def first_to(goals: int) -> WinRule:
    """The first team to score ``goals`` wins."""

    goals = _positive(goals, "goals")

    def rule(score_a: int, score_b: int) -> Optional[str]:
        if score_a >= goals and score_a > score_b:
            return "A"
        if score_b >= goals and score_b > score_a:
            return "B"
        return None

    rule.description = f"first_to:{goals}"
    return rule


def win_by(goals: int, margin: int) -> WinRule:
    """A team wins with at least ``goals`` and a lead of ``margin``."""

    goals = _positive(goals, "goals")
    margin = _positive(margin, "margin")

    def rule(score_a: int, score_b: int) -> Optional[str]:
        if score_a >= goals and score_a - score_b >= margin:
            return "A"
        if score_b >= goals and score_b - score_a >= margin:
            return "B"
        return None

    rule.description = f"win_by:{goals}:{margin}"
    return rule


RULES: Dict[str, Callable[..., WinRule]] = {
    "first_to": first_to,
    "win_by": win_by,
}

_ARITY = {"first_to": 1, "win_by": 2}


def parse_rule(text: str) -> WinRule:
    name, *raw_args = (text or "").strip().split(":")
    factory = RULES.get(name.strip().lower())
    if factory is None:
        raise InvalidConfig(f"unknown win rule: {text!r}")

    expected = _ARITY[name.strip().lower()]
    if len(raw_args) != expected:
        raise InvalidConfig(
            f"win rule {name!r} takes {expected} argument(s), got {len(raw_args)}"
        )

    try:
        args = [int(arg) for arg in raw_args]
    except ValueError:
        raise InvalidConfig(f"win rule arguments must be integers: {text!r}")
    return factory(*args)
