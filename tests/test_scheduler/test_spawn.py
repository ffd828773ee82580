"""
Test task spawning, ready queue ordering and the run/drive loop.
"""

import logging
import pytest

from cspylib import chan
from cspylib.runtime import (
    InvalidOperationError, RuntimeConfig, Scheduler, TaskCrashedError, TaskState
)


def test_spawn_does_not_run_task(scheduler, event_log):
    """spawn() only queues the task."""
    async def work():
        event_log.record("ran")

    tid = scheduler.spawn(work)

    assert event_log.events == []
    assert scheduler.get_task_info(tid).state is TaskState.READY

    scheduler.drive()

    assert event_log.events == ["ran"]
    assert not scheduler.is_alive(tid)


def test_ready_queue_is_fifo(scheduler, event_log):
    async def work(n):
        event_log.record(n)

    for n in range(5):
        scheduler.spawn(work, n)

    scheduler.drive()
    assert event_log.events == [0, 1, 2, 3, 4]


def test_yield_goes_to_back_of_queue(scheduler, event_log):
    async def worker(label):
        for i in range(3):
            event_log.record(label, i)
            await chan.sched_yield()

    scheduler.spawn(worker, "a")
    scheduler.spawn(worker, "b")
    scheduler.drive()

    assert event_log.events == [
        ("a", 0), ("b", 0), ("a", 1), ("b", 1), ("a", 2), ("b", 2),
    ]


def test_spawn_from_task_runs_after_queued_tasks(scheduler, event_log):
    async def child():
        event_log.record("child")

    async def parent():
        event_log.record("parent-start")
        chan.spawn(child)
        event_log.record("parent-end")

    async def other():
        event_log.record("other")

    scheduler.spawn(parent)
    scheduler.spawn(other)
    scheduler.drive()

    assert event_log.events == ["parent-start", "parent-end", "other", "child"]


def test_spawn_accepts_coroutine_object(scheduler):
    async def work(x):
        return x * 2

    assert scheduler.run(work(21)) == 42


def test_spawn_rejects_sync_function(scheduler):
    def not_async():
        return 1

    with pytest.raises(TypeError):
        scheduler.spawn(not_async)

    with pytest.raises(TypeError):
        scheduler.spawn(42)


def test_spawn_validates_name(scheduler):
    async def work():
        pass

    with pytest.raises(ValueError):
        scheduler.spawn(work, name="")
    with pytest.raises(TypeError):
        scheduler.spawn(work, name=7)


def test_run_returns_main_result(scheduler):
    async def main(a, b):
        await chan.sched_yield()
        return a + b

    assert scheduler.run(main, 2, 3) == 5


def test_run_reraises_main_error(scheduler):
    async def main():
        raise ValueError("boom")

    with pytest.raises(ValueError, match="boom"):
        scheduler.run(main)


def test_crashed_task_is_logged_and_others_continue(scheduler, event_log, caplog):
    async def crasher():
        raise KeyError("bad")

    async def survivor():
        await chan.sched_yield()
        event_log.record("survived")

    crash_tid = scheduler.spawn(crasher, name="crasher")
    scheduler.spawn(survivor)

    with caplog.at_level(logging.ERROR, logger="cspylib.runtime.scheduler"):
        scheduler.drive()

    assert event_log.events == ["survived"]
    assert not scheduler.is_alive(crash_tid)
    assert scheduler.get_statistics().total_crashed == 1
    assert any("crasher" in r.getMessage() and "failed" in r.getMessage() for r in caplog.records)


def test_fail_fast_aborts_drive():
    scheduler = Scheduler(RuntimeConfig(fail_fast=True))

    async def crasher():
        raise KeyError("bad")

    tid = scheduler.spawn(crasher, name="crasher")

    with pytest.raises(TaskCrashedError) as excinfo:
        scheduler.drive()

    assert excinfo.value.tid == tid
    assert isinstance(excinfo.value.__cause__, KeyError)


def test_foreign_awaitable_is_rejected(scheduler):
    class Foreign:
        def __await__(self):
            yield "not-a-trap"

    async def main():
        try:
            await Foreign()
        except InvalidOperationError:
            return "rejected"
        return "accepted"

    assert scheduler.run(main) == "rejected"


def test_drive_is_not_reentrant(scheduler):
    async def main():
        with pytest.raises(InvalidOperationError):
            scheduler.drive()
        return "ok"

    assert scheduler.run(main) == "ok"


def test_operations_outside_a_task_are_rejected(scheduler):
    ch = scheduler.make_channel(1)

    coro = ch.send(1)
    with pytest.raises(InvalidOperationError):
        coro.send(None)


def test_schedulers_are_independent(event_log):
    first = Scheduler(RuntimeConfig(name="first"))
    second = Scheduler(RuntimeConfig(name="second"))
    foreign = second.make_channel(1)

    async def main():
        with pytest.raises(InvalidOperationError):
            await foreign.send(1)
        with pytest.raises(InvalidOperationError):
            await chan.select([chan.recv_case(foreign)], default=True)
        event_log.record(chan.self_id())
        return "done"

    assert first.run(main) == "done"
    assert event_log.events == [1]
    assert second.get_statistics().total_spawned == 0


def test_task_info_for_blocked_task(scheduler):
    ch = scheduler.make_channel()

    async def waiter():
        return await ch.receive()

    tid = scheduler.spawn(waiter, name="waiter")

    with scheduler.hold("test"):
        scheduler.drive()

        info = scheduler.get_task_info(tid)
        assert info.state is TaskState.BLOCKED
        assert info.name == "waiter"
        assert "receive from" in info.waiting_on
        assert [t.tid for t in scheduler.list_tasks(TaskState.BLOCKED)] == [tid]
        assert [b.tid for b in scheduler.blocked_tasks()] == [tid]
        assert scheduler.get_statistics().blocked_tasks == 1

        assert ch.offer(5) is True
        assert scheduler.get_task_info(tid).state is TaskState.READY
        scheduler.drive()

    assert not scheduler.is_alive(tid)


def test_statistics_after_rendezvous(scheduler):
    async def pinger(ch):
        await ch.send("ping")

    async def main():
        ch = chan.make(0)
        chan.spawn(pinger, ch)
        return await chan.recv_ok(ch)

    assert scheduler.run(main) == ("ping", True)

    stats = scheduler.get_statistics()
    assert stats.name == "test"
    assert stats.total_spawned == 2
    assert stats.total_done == 2
    assert stats.channels_created == 1
    assert stats.messages_delivered == 1
    assert stats.total_tasks == 0
    assert stats.context_switches >= 3
