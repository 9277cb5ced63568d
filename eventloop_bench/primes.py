"""Prime number lookups, one per concurrency idiom.

The work unit draws a random candidate and trial-divides it. It is CPU-bound
filler for timing experiments. What matters is whether each variant lets the
event loop run between candidates.
"""

from __future__ import annotations

import asyncio
import functools
import math
import random
from collections.abc import Iterable

from eventloop_bench.yielding import iterate_yielding, yielding_map, yielding_range

CANDIDATE_SCALE = 4_000_000_000


def is_prime(n: int) -> bool:
    if n < 2:
        return False
    if n % 2 == 0:
        return n == 2
    for c in range(3, math.isqrt(n) + 1, 2):
        if n % c == 0:
            return False
    return True


def find_prime_candidate(index: int, rng: random.Random | None = None) -> int | None:
    """Return the candidate drawn for `index` if it is prime, else None."""
    rng = rng or random
    candidate = int(index * CANDIDATE_SCALE * rng.random())
    return candidate if is_prime(candidate) else None


def drop_empty(values: Iterable[int | None]) -> list[int]:
    return [v for v in values if v is not None]


# Synchronous (blocking) lookups


def find_primes(iterations: int, rng: random.Random | None = None) -> list[int]:
    primes = []
    for i in range(iterations):
        candidate = find_prime_candidate(i, rng)
        if candidate is not None:
            primes.append(candidate)
    return primes


def find_primes_map(iterations: int, rng: random.Random | None = None) -> list[int]:
    candidates = map(lambda i: find_prime_candidate(i, rng), range(iterations))
    return list(filter(lambda c: c is not None, candidates))


def find_primes_reduce(iterations: int, rng: random.Random | None = None) -> list[int]:
    def _step(acc: list[int], i: int) -> list[int]:
        candidate = find_prime_candidate(i, rng)
        if candidate is not None:
            acc.append(candidate)
        return acc

    return functools.reduce(_step, range(iterations), [])


# Asynchronous-looking lookups that still block: none of these coroutines
# ever suspends, so the loop gets no turn between candidates.


async def _check_candidate(index: int, rng: random.Random | None) -> int | None:
    return find_prime_candidate(index, rng)


async def find_primes_gather(iterations: int, rng: random.Random | None = None) -> list[int]:
    # gather wraps each coroutine in a task; all of them are ready at once and
    # run back to back inside a single loop iteration.
    found = await asyncio.gather(*(_check_candidate(i, rng) for i in range(iterations)))
    return drop_empty(found)


async def find_primes_async_await(iterations: int, rng: random.Random | None = None) -> list[int]:
    primes = []
    for i in range(iterations):
        candidate = await _check_candidate(i, rng)
        if candidate is not None:
            primes.append(candidate)
    return primes


# Non-blocking lookups


async def find_primes_yielding(
    iterations: int,
    rng: random.Random | None = None,
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[int]:
    found = await iterate_yielding(
        iterations, lambda i: find_prime_candidate(i, rng), batch_size=batch_size, cancel_event=cancel_event
    )
    return drop_empty(found)


async def find_primes_yielding_map(
    iterations: int,
    rng: random.Random | None = None,
    *,
    batch_size: int = 1,
    cancel_event: asyncio.Event | None = None,
) -> list[int]:
    indexes = await yielding_range(0, iterations, batch_size=batch_size, cancel_event=cancel_event)
    found = await yielding_map(
        indexes, lambda i, _: find_prime_candidate(i, rng), batch_size=batch_size, cancel_event=cancel_event
    )
    return drop_empty(found)


SYNC_VARIANTS = {
    "findPrimes": find_primes,
    "findPrimesMap": find_primes_map,
    "findPrimesReduce": find_primes_reduce,
}

ASYNC_VARIANTS = {
    "findPrimesGather": find_primes_gather,
    "findPrimesAsyncAwait": find_primes_async_await,
}

YIELDING_VARIANTS = {
    "findPrimesYielding": find_primes_yielding,
    "findPrimesYieldingMap": find_primes_yielding_map,
}
