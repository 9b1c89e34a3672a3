"""Status block matching for success and retry decisions."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class StatusClass:
    success: bool
    retryable: bool


class StatusMatcher:
    """A set of exact status codes and single-digit status blocks.

    ``5`` matches every code from 500 to 599, ``404`` matches only 404.
    """

    __slots__ = ("_rules",)

    def __init__(self, rules: Iterable[int]) -> None:
        self._rules = frozenset(int(rule) for rule in rules)

    def matches(self, status_code: int) -> bool:
        return status_code in self._rules or status_code // 100 in self._rules

    def __contains__(self, status_code: object) -> bool:
        return isinstance(status_code, int) and self.matches(status_code)

    def __repr__(self) -> str:
        return f"StatusMatcher({sorted(self._rules)!r})"


def classify_status(status_code: int, success: Iterable[int], retry: Iterable[int]) -> StatusClass:
    return StatusClass(
        success=StatusMatcher(success).matches(status_code),
        retryable=StatusMatcher(retry).matches(status_code),
    )
