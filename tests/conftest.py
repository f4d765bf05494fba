import asyncio
import dataclasses

import pytest

from conveyor import HttpPipeline, MemoryTokenStore, Navigator, Response


class FakeTransport:
    """Scripted transport that records calls and the number of overlapping sends."""

    def __init__(self, outcomes=None, latency=0.0):
        # each outcome: Response, exception instance, or callable(method, path, kwargs)
        self.outcomes = list(outcomes or [])
        self.latency = latency
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    def _next(self, method, path, kwargs):
        if not self.outcomes:
            return Response(200, {"ok": True}, url=path, method=method)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if callable(outcome) and not isinstance(outcome, Response):
            outcome = outcome(method, path, kwargs)
        return outcome

    async def send(self, method, path, **kwargs):
        self.calls.append((method, path, kwargs))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.latency)
            outcome = self._next(method, path, kwargs)
            if isinstance(outcome, BaseException):
                raise outcome
            # fresh copy per call so a repeated outcome reports its own request
            return dataclasses.replace(outcome, url=path, method=method)
        finally:
            self.in_flight -= 1

    async def close(self):
        self.closed = True

    @property
    def paths(self):
        return [c[1] for c in self.calls]


class SleepRecorder:
    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)
        await asyncio.sleep(0)


def respond(status, data=None, headers=None):
    return Response(status, data if data is not None else {}, headers or {})


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def navigator():
    return Navigator()


@pytest.fixture
def token_store():
    return MemoryTokenStore()


@pytest.fixture
def make_pipeline(transport, navigator, token_store):
    def _make(**kwargs):
        kwargs.setdefault("dispatch_delay", 0.0)
        kwargs.setdefault("cache_hit_delay", 0.0)
        p = HttpPipeline(
            transport=kwargs.pop("transport", transport),
            token_store=kwargs.pop("token_store", token_store),
            navigator=kwargs.pop("navigator", navigator),
            **kwargs,
        )
        p._sleep = SleepRecorder()
        return p

    return _make


@pytest.fixture
def pipeline(make_pipeline):
    return make_pipeline()
