"""
Card Sync — Batch Partitioner

Splits a batch of outcomes into successes and failures. Order within each
side is the order of the batch; every outcome lands on exactly one side.
"""

from __future__ import annotations

from typing import Iterable, TypeVar

T = TypeVar("T")


def partition(outcomes: Iterable[T | Exception]) -> tuple[list[T], list[Exception]]:
    """
    Args:
        outcomes: Records interleaved with the errors returned in their place.

    Returns:
        (successes, failures)
    """
    successes: list[T] = []
    failures: list[Exception] = []
    for outcome in outcomes:
        if isinstance(outcome, Exception):
            failures.append(outcome)
        else:
            successes.append(outcome)
    return successes, failures
