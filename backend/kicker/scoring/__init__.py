"""Pluggable rules deciding when a match is won."""

from .goals import RULES, WinRule, first_to, parse_rule, win_by

__all__ = [
    "RULES",
    "WinRule",
    "first_to",
    "parse_rule",
    "win_by",
]
