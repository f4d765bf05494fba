import asyncio
import logging

import pytest

from conveyor import RequestQueue, RequestSpec, Response, ResponseCache, ThrottleConfig


def _fast():
    return ThrottleConfig(dispatch_delay=0.0, cache_hit_delay=0.0)


@pytest.mark.asyncio
async def test_fifo_and_single_flight():
    order, active, peak = [], {"n": 0}, {"n": 0}

    async def dispatch(spec):
        active["n"] += 1
        peak["n"] = max(peak["n"], active["n"])
        await asyncio.sleep(0.005)
        order.append(spec.path)
        active["n"] -= 1
        return Response(200, spec.path)

    q = RequestQueue(dispatch, config=_fast())
    futures = [q.enqueue(RequestSpec("GET", f"/item/{i}")) for i in range(5)]
    results = await asyncio.gather(*futures)
    assert [r.data for r in results] == [f"/item/{i}" for i in range(5)]
    assert order == [f"/item/{i}" for i in range(5)]
    assert peak["n"] == 1


@pytest.mark.asyncio
async def test_pump_is_idempotent():
    async def dispatch(spec):
        await asyncio.sleep(0)
        return Response(200)

    q = RequestQueue(dispatch, config=_fast())
    fut = q.enqueue(RequestSpec("GET", "/a"))
    task = q._task
    q.process_next()
    q.process_next()
    assert q._task is task
    await fut
    await q.drain()
    assert q.processing is False


@pytest.mark.asyncio
async def test_delays_follow_outcome():
    cache = ResponseCache()
    cache.set("/cached{}", Response(200, "hit"))
    slept = []

    async def dispatch(spec):
        if spec.path == "/fail":
            raise RuntimeError("transport blew up")
        return Response(200, "net")

    async def sleep(delay):
        slept.append(delay)

    config = ThrottleConfig(dispatch_delay=0.5, cache_hit_delay=0.05)
    q = RequestQueue(dispatch, cache=cache, config=config)
    q._sleep = sleep
    a = q.enqueue(RequestSpec("GET", "/cached"))
    b = q.enqueue(RequestSpec("GET", "/other"))
    c = q.enqueue(RequestSpec("POST", "/fail"))
    assert (await a).data == "hit"
    assert (await b).data == "net"
    with pytest.raises(RuntimeError):
        await c
    await q.drain()
    assert slept == [0.05, 0.5, 0.5]


@pytest.mark.asyncio
async def test_post_never_served_from_cache():
    cache = ResponseCache()
    cache.set("/x{}", Response(200, "cached"))
    calls = []

    async def dispatch(spec):
        calls.append(spec.method)
        return Response(201, "fresh")

    q = RequestQueue(dispatch, cache=cache, config=_fast())
    assert (await q.enqueue(RequestSpec("POST", "/x"))).data == "fresh"
    assert calls == ["POST"]


@pytest.mark.asyncio
async def test_bad_item_does_not_stall_queue(caplog):
    class BrokenCache(ResponseCache):
        def get(self, key):
            if key.startswith("/broken"):
                raise KeyError(key)
            return super().get(key)

    async def dispatch(spec):
        return Response(200, spec.path)

    q = RequestQueue(dispatch, cache=BrokenCache(), config=_fast())
    with caplog.at_level(logging.ERROR, logger="conveyor"):
        bad = q.enqueue(RequestSpec("GET", "/broken"))
        good = q.enqueue(RequestSpec("GET", "/fine"))
        with pytest.raises(KeyError):
            await bad
        assert (await good).data == "/fine"
    assert any("failed to process" in r.getMessage() for r in caplog.records)


@pytest.mark.asyncio
async def test_close_fails_pending():
    release = asyncio.Event()

    async def dispatch(spec):
        await release.wait()
        return Response(200)

    q = RequestQueue(dispatch, config=_fast())
    in_flight = q.enqueue(RequestSpec("GET", "/first"))
    waiting = q.enqueue(RequestSpec("GET", "/second"))
    await asyncio.sleep(0)
    assert q.pending() == 1
    await q.close()
    with pytest.raises(RuntimeError):
        await waiting
    with pytest.raises(RuntimeError):
        await in_flight
