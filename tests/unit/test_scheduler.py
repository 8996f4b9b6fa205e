from __future__ import annotations

import asyncio

import pytest

from dispatch_service.services.scheduler import Scheduler
from tests.conftest import RecordingBatchSender, wait_until


@pytest.mark.asyncio
async def test_start_runs_immediate_cycle():
    sender = RecordingBatchSender()
    scheduler = Scheduler(sender, interval_s=60, batch_size=2)

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) == 1)

    assert sender.calls == [2]
    assert scheduler.cycles == 1
    assert scheduler.is_running() is True
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_double_start_keeps_single_loop():
    sender = RecordingBatchSender()
    scheduler = Scheduler(sender, interval_s=60, batch_size=1)

    await scheduler.start()
    first_task = scheduler._task
    await scheduler.start()
    await wait_until(lambda: len(sender.calls) >= 1)
    await asyncio.sleep(0.05)

    assert scheduler._task is first_task
    assert len(sender.calls) == 1
    assert scheduler.is_running() is True
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_double_stop_is_harmless():
    scheduler = Scheduler(RecordingBatchSender(), interval_s=60, batch_size=1)

    await scheduler.start()
    await scheduler.stop()
    await scheduler.stop()

    assert scheduler.is_running() is False
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_stop_when_never_started():
    scheduler = Scheduler(RecordingBatchSender(), interval_s=60, batch_size=1)

    await scheduler.stop()

    assert scheduler.is_running() is False


@pytest.mark.asyncio
async def test_cycles_repeat_on_interval():
    sender = RecordingBatchSender()
    scheduler = Scheduler(sender, interval_s=0.02, batch_size=3)

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) >= 3)
    await scheduler.shutdown()

    assert all(size == 3 for size in sender.calls)


@pytest.mark.asyncio
async def test_no_cycle_after_stop():
    sender = RecordingBatchSender()
    scheduler = Scheduler(sender, interval_s=0.05, batch_size=1)

    await scheduler.start()
    await scheduler.stop()
    await scheduler.shutdown()
    calls_after_stop = len(sender.calls)
    await asyncio.sleep(0.15)

    assert calls_after_stop <= 1
    assert len(sender.calls) == calls_after_stop


@pytest.mark.asyncio
async def test_cycle_errors_do_not_stop_the_loop():
    sender = RecordingBatchSender(error=RuntimeError("database unavailable"))
    scheduler = Scheduler(sender, interval_s=0.02, batch_size=1)

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) >= 3)

    assert scheduler.is_running() is True
    await scheduler.shutdown()


@pytest.mark.asyncio
async def test_overrunning_cycles_never_overlap():
    sender = RecordingBatchSender(delay_s=0.03)
    scheduler = Scheduler(sender, interval_s=0.005, batch_size=1)

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) >= 4)
    await scheduler.shutdown()

    assert sender.max_in_flight == 1


@pytest.mark.asyncio
async def test_stop_does_not_wait_for_in_flight_cycle():
    release = asyncio.Event()
    sender = RecordingBatchSender(release=release)
    scheduler = Scheduler(sender, interval_s=60, batch_size=1)

    await scheduler.start()
    await asyncio.wait_for(sender.entered.wait(), timeout=1)
    await asyncio.wait_for(scheduler.stop(), timeout=0.5)

    assert scheduler.is_running() is False
    assert sender.in_flight == 1

    release.set()
    await scheduler.shutdown()
    assert sender.in_flight == 0
    assert len(sender.calls) == 1


@pytest.mark.asyncio
async def test_scheduler_is_reusable():
    sender = RecordingBatchSender()
    scheduler = Scheduler(sender, interval_s=60, batch_size=1)

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) == 1)
    await scheduler.shutdown()

    await scheduler.start()
    await wait_until(lambda: len(sender.calls) == 2)

    assert scheduler.is_running() is True
    await scheduler.shutdown()
    assert scheduler.is_running() is False


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        Scheduler(RecordingBatchSender(), interval_s=0, batch_size=1)


@pytest.mark.asyncio
async def test_restart_during_cycle_waits_for_previous_loop():
    release = asyncio.Event()
    sender = RecordingBatchSender(release=release)
    scheduler = Scheduler(sender, interval_s=60, batch_size=1)

    await scheduler.start()
    await asyncio.wait_for(sender.entered.wait(), timeout=1)
    await asyncio.wait_for(scheduler.stop(), timeout=0.5)
    await scheduler.start()
    await asyncio.sleep(0.05)

    assert scheduler.is_running() is True
    assert len(sender.calls) == 1

    release.set()
    await wait_until(lambda: len(sender.calls) == 2)
    await scheduler.shutdown()

    assert sender.max_in_flight == 1
    assert scheduler.cycles == 2


@pytest.mark.asyncio
async def test_shutdown_waits_for_loop_left_by_restart():
    release = asyncio.Event()
    sender = RecordingBatchSender(release=release)
    scheduler = Scheduler(sender, interval_s=60, batch_size=1)

    await scheduler.start()
    await asyncio.wait_for(sender.entered.wait(), timeout=1)
    await scheduler.stop()
    await scheduler.start()

    shutdown = asyncio.create_task(scheduler.shutdown())
    await asyncio.sleep(0.05)
    assert shutdown.done() is False

    release.set()
    await asyncio.wait_for(shutdown, timeout=1)

    assert sender.in_flight == 0
    assert len(sender.calls) == 1
