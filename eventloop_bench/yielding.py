"""Cooperative iteration that hands control back to the event loop.

Running a CPU-bound loop inside a single coroutine step blocks every other
task on the loop until it finishes. `YieldingIterator` runs the loop in
batches and awaits a zero-delay `asyncio.sleep(0)` after each one, so health
checks and timers queued in the meantime get their turn.
"""

from __future__ import annotations

import asyncio
import math
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Generic, TypeVar

T = TypeVar("T")
U = TypeVar("U")


class ComputationError(Exception):
    """A work unit raised. Carries the failing index; the cause is chained."""

    def __init__(self, index: int, cause: BaseException) -> None:
        super().__init__(f"work unit failed at index {index}: {cause!r}")
        self.index = index
        self.cause = cause


class IterationCancelled(asyncio.CancelledError):
    """Raised when the cancellation signal is seen at a yield point."""

    def __init__(self, completed_steps: int) -> None:
        super().__init__(f"iteration cancelled after {completed_steps} steps")
        self.completed_steps = completed_steps


class YieldingIterator(Generic[T]):
    def __init__(
        self,
        total_steps: int,
        work_unit: Callable[[int], T],
        *,
        batch_size: int = 1,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        if total_steps < 0:
            raise ValueError(f"total_steps must be >= 0, got {total_steps}")
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")
        self.total_steps = total_steps
        self.work_unit = work_unit
        self.batch_size = batch_size
        self.cancel_event = cancel_event
        self.yields = 0
        self.completed_steps = 0

    @property
    def expected_yields(self) -> int:
        return math.ceil(self.total_steps / self.batch_size)

    def _batches(self, results: list[T]) -> Iterator[bool]:
        # One batch per next(); the yielded marker says whether more work remains.
        index = 0
        while index < self.total_steps:
            stop = min(index + self.batch_size, self.total_steps)
            for i in range(index, stop):
                try:
                    results.append(self.work_unit(i))
                except Exception as e:
                    raise ComputationError(i, e) from e
                self.completed_steps = i + 1
            index = stop
            yield index < self.total_steps

    def _check_cancelled(self) -> None:
        if self.cancel_event is not None and self.cancel_event.is_set():
            raise IterationCancelled(self.completed_steps)

    async def run(self) -> list[T]:
        """Run every step and return the results in index order.

        All-or-nothing: on failure or cancellation the partial list is dropped.
        """
        results: list[T] = []
        self._check_cancelled()
        for more in self._batches(results):
            self.yields += 1
            await asyncio.sleep(0)
            if more:
                self._check_cancelled()
        return results


async def iterate_yielding(
    total_steps: int,
    work_unit: Callable[[int], T],
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[T]:
    return await YieldingIterator(
        total_steps, work_unit, batch_size=batch_size, cancel_event=cancel_event
    ).run()


async def yielding_map(
    items: Sequence[T],
    fn: Callable[[T, int], U],
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[U]:
    return await iterate_yielding(
        len(items), lambda i: fn(items[i], i), batch_size=batch_size, cancel_event=cancel_event
    )


async def yielding_filter(
    items: Sequence[T],
    predicate: Callable[[T], Any],
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[T]:
    keep = await iterate_yielding(
        len(items), lambda i: bool(predicate(items[i])), batch_size=batch_size, cancel_event=cancel_event
    )
    return [item for item, k in zip(items, keep) if k]


async def create_list(
    size: int,
    value: Any = None,
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[Any]:
    return await iterate_yielding(
        max(size, 0), lambda _: value, batch_size=batch_size, cancel_event=cancel_event
    )


async def yielding_range(
    start: int,
    stop: int,
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[int]:
    return await iterate_yielding(
        max(stop - start, 0), lambda i: start + i, batch_size=batch_size, cancel_event=cancel_event
    )
