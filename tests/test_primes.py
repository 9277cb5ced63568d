from __future__ import annotations

import asyncio
import random

import pytest

import eventloop_bench.primes as primes
from eventloop_bench.primes import (
    ASYNC_VARIANTS,
    SYNC_VARIANTS,
    YIELDING_VARIANTS,
    find_prime_candidate,
    find_primes,
    is_prime,
)


def test_is_prime() -> None:
    assert [n for n in range(30) if is_prime(n)] == [2, 3, 5, 7, 11, 13, 17, 19, 23, 29]
    assert is_prime(7919)
    assert not is_prime(7917)
    assert not is_prime(-7)


def test_candidate_zero_is_never_prime() -> None:
    assert find_prime_candidate(0, random.Random(1)) is None


def test_candidates_are_prime_or_none() -> None:
    rng = random.Random(7)
    for i in range(50):
        c = find_prime_candidate(i, rng)
        assert c is None or is_prime(c)


@pytest.mark.parametrize("name", sorted(SYNC_VARIANTS))
def test_sync_variants_agree_with_plain_loop(name: str) -> None:
    expected = find_primes(60, random.Random(42))
    assert SYNC_VARIANTS[name](60, random.Random(42)) == expected


@pytest.mark.asyncio
@pytest.mark.parametrize("name", sorted(ASYNC_VARIANTS) + sorted(YIELDING_VARIANTS))
async def test_async_variants_agree_with_plain_loop(name: str) -> None:
    expected = find_primes(60, random.Random(42))
    variants = {**ASYNC_VARIANTS, **YIELDING_VARIANTS}
    assert await variants[name](60, random.Random(42)) == expected


def _trace(monkeypatch: pytest.MonkeyPatch, log: list[str]) -> None:
    def fake_candidate(index: int, rng=None):
        log.append("work")
        return index

    monkeypatch.setattr(primes, "find_prime_candidate", fake_candidate)


async def _ticker(log: list[str]) -> None:
    while True:
        log.append("other")
        await asyncio.sleep(0)


def _interleaved(log: list[str]) -> bool:
    first = log.index("work")
    last = len(log) - 1 - log[::-1].index("work")
    return "other" in log[first:last]


@pytest.mark.asyncio
@pytest.mark.parametrize("name", sorted(ASYNC_VARIANTS))
async def test_async_looking_variants_still_block(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    log: list[str] = []
    _trace(monkeypatch, log)
    ticker = asyncio.create_task(_ticker(log))

    found = await ASYNC_VARIANTS[name](20)
    ticker.cancel()

    assert found == list(range(20))
    assert not _interleaved(log)


@pytest.mark.asyncio
@pytest.mark.parametrize("name", sorted(YIELDING_VARIANTS))
async def test_yielding_variants_let_other_tasks_run(monkeypatch: pytest.MonkeyPatch, name: str) -> None:
    log: list[str] = []
    _trace(monkeypatch, log)
    ticker = asyncio.create_task(_ticker(log))

    found = await YIELDING_VARIANTS[name](20, batch_size=4)
    ticker.cancel()

    assert found == list(range(20))
    assert _interleaved(log)


def test_drop_empty_keeps_zero_and_order() -> None:
    assert primes.drop_empty([None, 5, 0, None, 3]) == [5, 0, 3]
