"""
Module-level task and channel API.

Every function resolves its scheduler through ``get_runtime()``: inside a
task that is the scheduler driving it, elsewhere the default registered with
``set_runtime()``.

    from cspylib import chan
    from cspylib.runtime import Scheduler

    async def pinger(ch):
        await chan.send(ch, "ping")

    async def main():
        ch = chan.make(0)
        chan.spawn(pinger, ch)
        return await chan.recv_ok(ch)

    Scheduler().run(main)   # ("ping", True)
"""

from typing import Any, Iterable, Optional, Tuple

from cspylib.runtime.select import (
    recv_case, select as _select, send_case
)
from cspylib.runtime.channel import Channel, NO_ZERO, resolve_channel
from cspylib.runtime.data import Direction, SelectCase, SelectResult
from cspylib.runtime.registry import get_runtime
from cspylib.runtime.scheduler import sched_yield as _sched_yield


def spawn(work: Any, *args: Any, name: Optional[str] = None) -> int:
    """Schedule ``work(*args)`` as a new task; returns its id without running it."""
    return get_runtime().spawn(work, *args, name=name)


def make(capacity: int = 0, *, zero: Any = NO_ZERO, elem_type: Optional[type] = None) -> Channel:
    """Create a channel; capacity 0 gives a rendezvous channel."""
    return get_runtime().make_channel(capacity, zero=zero, elem_type=elem_type)


async def send(channel: Any, value: Any) -> None:
    """Send ``value``, parking until it is accepted."""
    await resolve_channel(channel, Direction.SEND).send(value)


async def recv(channel: Any) -> Any:
    """Receive a value; the channel's zero value once it is closed and drained."""
    return await resolve_channel(channel, Direction.RECEIVE).receive()


async def recv_ok(channel: Any) -> Tuple[Any, bool]:
    """Receive ``(value, ok)``; ``ok`` is False once the channel is closed and drained."""
    return await resolve_channel(channel, Direction.RECEIVE).receive_with_ok()


async def select(cases: Iterable[SelectCase], default: bool = False) -> SelectResult:
    """Wait on several operations; see ``cspylib.runtime.select.select``."""
    return await _select(get_runtime(), cases, default)


def close(channel: Any) -> None:
    """Close a channel (or a send-only view of one)."""
    resolve_channel(channel, Direction.SEND).close()


async def sched_yield() -> None:
    """Move the calling task to the back of the ready queue."""
    get_runtime()._require_task("sched_yield")
    await _sched_yield()


def length(channel: Any) -> int:
    """Number of buffered values."""
    return len(resolve_channel(channel))


def cap(channel: Any) -> int:
    """Channel capacity."""
    return resolve_channel(channel).capacity


def self_id() -> Optional[int]:
    """Id of the running task."""
    return get_runtime().current_task()


def kill(tid: int) -> bool:
    """Cancel a task, removing it from every channel it waits on."""
    return get_runtime().cancel(tid)
