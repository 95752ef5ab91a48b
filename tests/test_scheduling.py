from __future__ import annotations

import asyncio

from live_coach.scheduling import DeferredTask, PeriodicTask


def test_deferred_task_restarts_on_reschedule():
    fired = []

    async def scenario():
        loop = asyncio.get_running_loop()
        task = DeferredTask(lambda: fired.append(loop.time()), delay=0.2)
        start = loop.time()
        task.schedule()
        await asyncio.sleep(0.1)
        task.schedule()
        await asyncio.sleep(0.15)
        assert fired == []
        await asyncio.sleep(0.2)
        return start

    start = asyncio.run(scenario())
    assert len(fired) == 1
    assert fired[0] - start >= 0.3


def test_deferred_task_cancel():
    fired = []

    async def scenario():
        task = DeferredTask(lambda: fired.append(1), delay=0.05)
        task.schedule()
        assert task.pending
        task.cancel()
        assert not task.pending
        await asyncio.sleep(0.1)

    asyncio.run(scenario())
    assert fired == []


def test_deferred_task_survives_callback_error():
    async def scenario():
        def boom():
            raise RuntimeError("boom")

        task = DeferredTask(boom, delay=0.01)
        task.schedule()
        await asyncio.sleep(0.05)
        return task.pending

    assert asyncio.run(scenario()) is False


def test_periodic_task_repeats_and_survives_errors():
    calls = []

    def callback():
        calls.append(1)
        if len(calls) == 2:
            raise ValueError("transient")

    async def scenario():
        task = PeriodicTask(callback, interval=0.01, name="probe")
        task.start()
        assert task.running
        await asyncio.sleep(0.2)
        await task.stop()
        assert not task.running

    asyncio.run(scenario())
    assert len(calls) >= 3


def test_periodic_task_awaits_coroutines():
    seen = []

    async def callback():
        await asyncio.sleep(0)
        seen.append(1)

    async def scenario():
        task = PeriodicTask(callback, interval=0.01)
        task.start()
        await asyncio.sleep(0.1)
        await task.stop()
        await task.stop()

    asyncio.run(scenario())
    assert seen
