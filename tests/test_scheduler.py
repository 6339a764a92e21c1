import asyncio

import pytest

from gasforms.services.scheduler import APSchedulerBackend, VirtualScheduler


async def test_virtual_jobs_run_once_per_interval(scheduler):
    runs = []
    scheduler.every(10, lambda: runs.append(scheduler.now()))

    assert await scheduler.advance(35) == 3
    assert runs == [10, 20, 30]
    assert scheduler.now() == 35


async def test_virtual_jobs_run_in_due_order(scheduler):
    order = []
    scheduler.every(15, lambda: order.append("slow"))
    scheduler.every(10, lambda: order.append("fast"))

    await scheduler.advance(25)
    assert order == ["fast", "slow", "fast"]


async def test_virtual_scheduler_awaits_async_callbacks(scheduler):
    done = []

    async def job():
        await asyncio.sleep(0)
        done.append(True)

    scheduler.every(5, job)
    await scheduler.advance(5)
    assert done == [True]


async def test_failing_job_keeps_running(scheduler):
    calls = []

    def job():
        calls.append(1)
        raise RuntimeError("boom")

    scheduler.every(1, job)
    assert await scheduler.advance(3) == 3
    assert len(calls) == 3


async def test_cancel_and_replace(scheduler):
    calls = []
    first = scheduler.every(5, lambda: calls.append("first"), job_id="sweep")
    second = scheduler.every(5, lambda: calls.append("second"), job_id="sweep")

    assert not first.active
    assert scheduler.active_jobs == 1

    await scheduler.advance(5)
    assert calls == ["second"]

    first.cancel()
    second.cancel()
    assert await scheduler.advance(50) == 0


def test_virtual_scheduler_rejects_non_positive_interval():
    with pytest.raises(ValueError):
        VirtualScheduler().every(0, lambda: None)


async def test_apscheduler_backend_registers_and_cancels_jobs():
    backend = APSchedulerBackend()
    backend.start()
    try:
        task = backend.every(300, lambda: None, job_id="cache_cleanup")
        info = backend.get_job_info("cache_cleanup")
        assert info["id"] == "cache_cleanup"
        assert info["next_run_time"] is not None

        task.cancel()
        task.cancel()
        assert not task.active
        assert backend.get_job_info("cache_cleanup") is None
    finally:
        await backend.shutdown()
    assert not backend.running


async def test_apscheduler_backend_runs_async_callbacks():
    fired = asyncio.Event()

    async def job():
        fired.set()

    backend = APSchedulerBackend()
    backend.start()
    try:
        backend.every(0.05, job, job_id="tick")
        await asyncio.wait_for(fired.wait(), timeout=5)
    finally:
        await backend.shutdown()
