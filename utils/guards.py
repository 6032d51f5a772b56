"""
Ordered request guards.

A guard is a zero-argument callable returning None when it passes or a
Failure naming the error to raise. Guards run in order and stop at the
first Failure, so expensive checks (database lookups) go last.
"""
from __future__ import annotations

from typing import Callable, Iterable, NamedTuple, Optional


class Failure(NamedTuple):
    error: type
    message: str


Guard = Callable[[], Optional[Failure]]


def require(condition: bool, error: type, message: str) -> Optional[Failure]:
    return None if condition else Failure(error, message)


def first_failure(guards: Iterable[Guard]) -> Optional[Failure]:
    for guard in guards:
        failure = guard()
        if failure is not None:
            return failure
    return None


def enforce(*guards: Guard) -> None:
    """Raise the error of the first failing guard, if any."""
    failure = first_failure(guards)
    if failure is not None:
        raise failure.error(failure.message)
