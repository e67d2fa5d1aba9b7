"""Per-request fan-out of independent fetch groups."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar

T = TypeVar("T")
R = TypeVar("R")


@dataclass(frozen=True)
class Outcome(Generic[R]):
    """Result of one fan-out item, tagged with its original position."""

    index: int
    result: Optional[R] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def fan_out(func: Callable[[T], R], items: Sequence[T], max_workers: int = 8) -> list[Outcome[R]]:
    """Run ``func`` over ``items`` concurrently and join on all of them.

    Every item runs to completion even when others fail. Outcomes come back in
    the order of ``items`` regardless of completion order.
    """

    def run(index: int, item: T) -> Outcome[R]:
        try:
            return Outcome(index=index, result=func(item))
        except Exception as exc:  # noqa: BLE001
            return Outcome(index=index, error=exc)

    if not items:
        return []

    workers = max(1, min(max_workers, len(items)))
    with ThreadPoolExecutor(max_workers=workers) as pool:
        futures = [pool.submit(run, index, item) for index, item in enumerate(items)]
        outcomes = [future.result() for future in futures]
    return sorted(outcomes, key=lambda outcome: outcome.index)


def first_error(outcomes: Sequence[Outcome]) -> Optional[BaseException]:
    for outcome in outcomes:
        if not outcome.ok:
            return outcome.error
    return None
