"""
Explicit success / degraded results.

Analysis code never hides a fallback inside an ``except`` that returns an
empty value. Instead it returns an ``Outcome``: ``Ok(value)`` when the
analysis ran normally, or ``Degraded(value, reason)`` when ``value`` is a
fallback built because something went wrong. Callers that only need the value
read ``outcome.value``; callers that care branch on ``outcome.degraded``.
"""

from dataclasses import dataclass
from typing import Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def degraded(self) -> bool:
        return False


@dataclass(frozen=True)
class Degraded(Generic[T]):
    value: T
    reason: str

    @property
    def degraded(self) -> bool:
        return True


Outcome = Union[Ok[T], Degraded[T]]
