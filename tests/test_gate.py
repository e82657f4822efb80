import asyncio
import threading
import time

import pytest

from areastamp.gate import RenderGate


class _Probe:
    """Counts how many jobs run at the same time inside worker threads."""

    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def work(self, value: int, delay: float = 0.02) -> int:
        with self.lock:
            self.active += 1
            self.peak = max(self.peak, self.active)
        try:
            time.sleep(delay)
            return value * 2
        finally:
            with self.lock:
                self.active -= 1


def test_gate_never_runs_more_than_two_jobs() -> None:
    probe = _Probe()

    async def scenario() -> list[int]:
        gate = RenderGate(2)
        try:
            return await asyncio.gather(*(gate.run(probe.work, n) for n in range(12)))
        finally:
            assert gate.in_flight == 0
            assert gate.peak == 2
            gate.close()

    results = asyncio.run(scenario())

    assert results == [n * 2 for n in range(12)]
    assert probe.peak == 2


def test_gate_releases_permit_when_job_fails() -> None:
    def boom() -> None:
        raise RuntimeError("codec exploded")

    async def scenario() -> int:
        gate = RenderGate(1)
        try:
            with pytest.raises(RuntimeError, match="codec exploded"):
                await gate.run(boom)
            return await asyncio.wait_for(gate.run(lambda: 7), timeout=2)
        finally:
            gate.close()

    assert asyncio.run(scenario()) == 7


def test_cancelled_request_keeps_permit_until_worker_finishes() -> None:
    started = threading.Event()
    finish = threading.Event()

    def slow() -> str:
        started.set()
        finish.wait(timeout=5)
        return "done"

    async def scenario() -> None:
        gate = RenderGate(1)
        try:
            task = asyncio.create_task(gate.run(slow))
            await asyncio.to_thread(started.wait, 5)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
            # the worker is still drawing, so the permit is still held
            assert gate.in_flight == 1

            finish.set()
            assert await asyncio.wait_for(gate.run(lambda: "next"), timeout=2) == "next"
            assert gate.in_flight == 0
        finally:
            finish.set()
            gate.close()

    asyncio.run(scenario())


def test_slot_releases_on_error() -> None:
    async def scenario() -> None:
        gate = RenderGate(1)
        try:
            with pytest.raises(ValueError):
                async with gate.slot():
                    assert gate.in_flight == 1
                    raise ValueError("bad request")
            assert gate.in_flight == 0
            async with gate.slot():
                assert gate.in_flight == 1
        finally:
            gate.close()

    asyncio.run(scenario())


def test_gate_rejects_zero_capacity() -> None:
    with pytest.raises(ValueError):
        RenderGate(0)
