"""Tests for CallSequencer."""

import asyncio

import pytest

from hireflow.ratelimit import CallSequencer

from conftest import FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sequencer(clock):
    return CallSequencer(min_interval=1.0, name="engine", clock=clock, sleep=clock.sleep)


class TestCallSequencer:
    """Tests for call spacing."""

    def test_negative_interval_rejected(self):
        with pytest.raises(ValueError):
            CallSequencer(min_interval=-1)

    @pytest.mark.asyncio
    async def test_first_call_is_immediate(self, sequencer, clock):
        assert await sequencer.wait() == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_back_to_back_calls_are_spaced(self, sequencer, clock):
        await sequencer.wait()
        clock.now += 0.25
        waited = await sequencer.wait()
        assert waited == pytest.approx(0.75)
        assert clock.sleeps == [pytest.approx(0.75)]

    @pytest.mark.asyncio
    async def test_no_wait_after_interval_elapsed(self, sequencer, clock):
        await sequencer.wait()
        clock.now += 2.0
        assert await sequencer.wait() == 0.0

    @pytest.mark.asyncio
    async def test_slot_context_manager(self, sequencer, clock):
        for _ in range(3):
            async with sequencer.slot():
                pass
        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_run_preserves_order(self, sequencer, clock):
        async def call(value):
            return value * 2

        results = await sequencer.run([lambda v=v: call(v) for v in range(4)])
        assert results == [0, 2, 4, 6]
        assert len(clock.sleeps) == 3

    @pytest.mark.asyncio
    async def test_run_stops_on_error(self, sequencer):
        started = []

        async def ok():
            started.append("ok")

        async def boom():
            started.append("boom")
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            await sequencer.run([ok, boom, ok])
        assert started == ["ok", "boom"]

    @pytest.mark.asyncio
    async def test_concurrent_waiters_are_serialized(self, sequencer, clock):
        await asyncio.gather(*(sequencer.wait() for _ in range(3)))
        assert clock.sleeps == [1.0, 1.0]

    @pytest.mark.asyncio
    async def test_reset(self, sequencer, clock):
        await sequencer.wait()
        sequencer.reset()
        assert await sequencer.wait() == 0.0
        assert clock.sleeps == []

    @pytest.mark.asyncio
    async def test_stats(self, sequencer):
        await sequencer.wait()
        await sequencer.wait()
        stats = sequencer.get_stats()
        assert stats["name"] == "engine"
        assert stats["total_calls"] == 2
        assert stats["total_wait_seconds"] == 1.0

    @pytest.mark.asyncio
    async def test_zero_interval_never_sleeps(self, clock):
        sequencer = CallSequencer(min_interval=0.0, clock=clock, sleep=clock.sleep)
        for _ in range(5):
            await sequencer.wait()
        assert clock.sleeps == []
