"""Insight cache: fingerprinting, TTL on read and failure handling."""

import asyncio
from datetime import timedelta

import pytest

from app.ai.insight_cache import InsightCache, fingerprint
from app.core.errors import GenerationError
from app.models.analytics_models import InsightPayload


def payload(content: str, clock) -> InsightPayload:
    return InsightPayload(content=content, generated_at=clock())


def test_fingerprint_is_order_independent_and_input_sensitive():
    a = fingerprint("general_insights", {"spend": 1, "clicks": 2}, {"period": "7d"})
    b = fingerprint("general_insights", {"clicks": 2, "spend": 1}, {"period": "7d"})
    c = fingerprint("general_insights", {"clicks": 2, "spend": 1}, {"period": "30d"})
    assert a == b
    assert a != c
    assert len(a) == 64


async def test_second_call_within_ttl_is_served_from_cache(clock):
    cache = InsightCache(ttl_seconds=3600, clock=clock)
    calls = []

    async def generate():
        calls.append(1)
        return payload(f"narrative {len(calls)}", clock)

    first = await cache.get_or_generate("fp", generate)
    clock.now += timedelta(minutes=59)
    second = await cache.get_or_generate("fp", generate)

    assert first.content == second.content == "narrative 1"
    assert len(calls) == 1


async def test_entry_regenerates_after_ttl(clock):
    cache = InsightCache(ttl_seconds=3600, clock=clock)
    contents = iter(["old", "new"])

    async def generate():
        return payload(next(contents), clock)

    await cache.get_or_generate("fp", generate)
    clock.now += timedelta(hours=1, seconds=1)
    refreshed = await cache.get_or_generate("fp", generate)

    assert refreshed.content == "new"
    assert cache.get("fp").content == "new"


async def test_failed_generation_leaves_cache_empty(clock):
    cache = InsightCache(ttl_seconds=3600, clock=clock)

    async def boom():
        raise GenerationError("model down")

    with pytest.raises(GenerationError):
        await cache.get_or_generate("fp", boom)
    assert cache.get("fp") is None
    assert len(cache) == 0


async def test_purge_expired_drops_only_stale_entries(clock):
    cache = InsightCache(ttl_seconds=60, clock=clock)

    async def generate():
        return payload("x", clock)

    await cache.get_or_generate("old", generate)
    clock.now += timedelta(seconds=45)
    await cache.get_or_generate("fresh", generate)
    clock.now += timedelta(seconds=30)

    assert cache.purge_expired() == 1
    assert cache.get("fresh") is not None
    assert len(cache) == 1


async def test_concurrent_misses_share_one_generation(clock):
    cache = InsightCache(ttl_seconds=3600, clock=clock)
    calls = []

    async def slow_generate():
        calls.append(1)
        await asyncio.sleep(0.01)
        return payload("shared", clock)

    first, second = await asyncio.gather(
        cache.get_or_generate("fp", slow_generate),
        cache.get_or_generate("fp", slow_generate),
    )

    assert len(calls) == 1
    assert first.content == second.content == "shared"


async def test_waiter_generates_after_a_failed_first_attempt(clock):
    cache = InsightCache(ttl_seconds=3600, clock=clock)
    outcomes = iter([GenerationError("model down"), "recovered"])

    async def flaky():
        await asyncio.sleep(0.01)
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return payload(outcome, clock)

    results = await asyncio.gather(
        cache.get_or_generate("fp", flaky),
        cache.get_or_generate("fp", flaky),
        return_exceptions=True,
    )

    assert isinstance(results[0], GenerationError)
    assert results[1].content == "recovered"
