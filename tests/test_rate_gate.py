import asyncio

import pytest

from deep_research.rate_gate import RateGate, ResearchContext
from tests.conftest import make_config


class FakeClock:
    def __init__(self):
        self.now = 0.0
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float):
        self.sleeps.append(seconds)
        self.now += seconds


def make_gate(call=6.0, deep=61.0):
    clock = FakeClock()
    return RateGate(call, deep, clock=clock, sleep=clock.sleep), clock


@pytest.mark.asyncio
async def test_first_call_does_not_wait():
    gate, clock = make_gate()

    assert await gate.wait_for_call() == 0.0
    assert clock.sleeps == []


@pytest.mark.asyncio
async def test_second_call_waits_for_remaining_interval():
    gate, clock = make_gate(call=6.0)

    await gate.wait_for_call()
    clock.now += 2.0
    waited = await gate.wait_for_call()

    assert waited == pytest.approx(4.0)
    assert clock.sleeps == [pytest.approx(4.0)]


@pytest.mark.asyncio
async def test_no_wait_once_interval_has_passed():
    gate, clock = make_gate(call=6.0)

    await gate.wait_for_call()
    clock.now += 10.0

    assert await gate.wait_for_call() == 0.0


@pytest.mark.asyncio
async def test_concurrent_waiters_are_spaced_one_interval_apart():
    gate, clock = make_gate(call=6.0)
    starts = []

    async def call():
        await gate.wait_for_call()
        starts.append(clock.now)

    await asyncio.gather(call(), call(), call())

    assert starts == [0.0, 6.0, 12.0]


@pytest.mark.asyncio
async def test_call_and_deep_call_channels_are_independent():
    gate, clock = make_gate(call=6.0, deep=61.0)

    await gate.wait_for_deep_call()
    assert await gate.wait_for_call() == 0.0

    clock.now += 6.0
    waited = await gate.wait_for_deep_call()

    assert waited == pytest.approx(55.0)


def test_deep_interval_must_not_be_shorter_than_call_interval():
    with pytest.raises(ValueError):
        RateGate(10.0, 5.0)
    with pytest.raises(ValueError):
        RateGate(-1.0, 5.0)


def test_context_is_built_from_config():
    cfg = make_config(concurrency_limit=3, call_interval=1.0, deep_call_interval=2.0)

    ctx = ResearchContext.from_config(cfg, run_id="r1")

    assert ctx.run_id == "r1"
    assert ctx.gate.intervals == {"call": 1.0, "deep-call": 2.0}
    assert ctx.gate.run_id == "r1"
    assert ctx.config is cfg
