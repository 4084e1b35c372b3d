"""
Declarative heuristic rules: weighted signals and ordered first-match tables.

Keyword lists, step indicators, and categorization tables are data; the two
evaluators here are the only control flow that reads them.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, Optional, Sequence, TypeVar

S = TypeVar("S")
T = TypeVar("T")


@dataclass(frozen=True)
class Rule(Generic[S]):
    """One weighted signal. `test` receives the subject being scored."""

    name: str
    weight: float
    test: Callable[[S], bool]


@dataclass(frozen=True)
class RuleScore:
    score: float
    matched: tuple[str, ...]


def clamp(value: float, low: float = 0.0, high: float = 1.0) -> float:
    return max(low, min(high, value))


def evaluate(rules: Sequence[Rule[S]], subject: S) -> RuleScore:
    """
    Sum the weights of matching rules, clamped to [0, 1].

    A rule whose test raises counts as not matching.
    """
    total = 0.0
    matched: list[str] = []
    for rule in rules:
        try:
            hit = rule.test(subject)
        except (TypeError, ValueError, AttributeError):
            hit = False
        if hit:
            total += rule.weight
            matched.append(rule.name)
    return RuleScore(score=round(clamp(total), 4), matched=tuple(matched))


def compile_table(table: Iterable[tuple[str, T]]) -> tuple[tuple[re.Pattern[str], T], ...]:
    """Compile (regex, label) rows case-insensitively, preserving order."""
    return tuple((re.compile(pattern, re.I), label) for pattern, label in table)


def first_match(
    table: Sequence[tuple[re.Pattern[str], T]], text: str, default: T
) -> T:
    """Label of the first row whose pattern matches text; default when none does."""
    for pattern, label in table:
        if pattern.search(text):
            return label
    return default


def any_pattern(patterns: Iterable[re.Pattern[str]], text: Optional[str]) -> bool:
    if not text:
        return False
    return any(p.search(text) for p in patterns)
