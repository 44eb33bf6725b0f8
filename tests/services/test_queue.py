import asyncio

import pytest

from trap_oracle.services.queue import WorkQueue


async def test_runs_units_with_bounded_concurrency():
    queue = WorkQueue(concurrency=2)
    active = 0
    peak = 0

    async def unit():
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1

    for _ in range(6):
        queue.add(unit)
    await asyncio.wait_for(queue.wait_idle(), timeout=2)

    assert peak == 2
    assert queue.pending == 0
    await queue.close()


async def test_failing_unit_does_not_stop_the_queue():
    queue = WorkQueue(concurrency=1)
    done = []

    async def boom():
        raise RuntimeError("unit failure")

    async def ok():
        done.append(True)

    queue.add(boom)
    queue.add(ok)
    await asyncio.wait_for(queue.wait_idle(), timeout=2)

    assert done == [True]
    assert queue.running
    await queue.close()


async def test_delayed_units_count_as_pending():
    queue = WorkQueue()
    done = []

    async def unit():
        done.append(True)

    queue.add_later(unit, 0.05)
    assert queue.pending == 1
    await asyncio.wait_for(queue.wait_idle(), timeout=2)

    assert done == [True]
    await queue.close()


async def test_close_drains_before_stopping():
    queue = WorkQueue()
    done = []

    async def unit():
        await asyncio.sleep(0.02)
        done.append(True)

    queue.add(unit)
    assert await queue.close(timeout=2)
    assert done == [True]
    assert not queue.running


async def test_close_gives_up_after_timeout():
    queue = WorkQueue()

    async def stuck():
        await asyncio.sleep(10)

    queue.add(stuck)
    queue.add_later(stuck, 10)

    assert not await queue.close(timeout=0.05)
    assert not queue.running


def test_concurrency_must_be_positive():
    with pytest.raises(ValueError):
        WorkQueue(concurrency=0)


async def test_timed_out_close_leaves_queue_idle():
    queue = WorkQueue(concurrency=1)

    async def stuck():
        await asyncio.sleep(10)

    queue.add(stuck)
    queue.add_later(stuck, 0)
    # Let the delayed unit land in the queue behind the busy worker.
    await asyncio.sleep(0.02)
    assert queue.pending == 2

    assert not await queue.close(timeout=0.05)
    assert queue.pending == 0
    await asyncio.wait_for(queue.wait_idle(), timeout=1)
