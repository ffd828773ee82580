"""
Select Coordinator

Waits on several channel operations at once. Ready cases are chosen
uniformly at random so textually earlier cases get no preference; when
nothing is ready the task registers on every candidate channel and the first
operation to be satisfied wins. The scheduler removes the remaining
registrations before the task becomes ready again.
"""

from typing import Any, Iterable, List, Optional, Tuple, TYPE_CHECKING

from cspylib.runtime.channel import Channel, resolve_channel
from cspylib.runtime.core import validate_cases
from cspylib.runtime.data import (
    DEFAULT, Direction, PendingOperation, PendingWait, SelectCase,
    SelectResult, WaitKind
)

if TYPE_CHECKING:
    from cspylib.runtime.scheduler import Scheduler


def send_case(channel: Any, value: Any) -> SelectCase:
    """Select case that sends ``value`` on ``channel``."""
    return SelectCase(channel, Direction.SEND, value)


def recv_case(channel: Any) -> SelectCase:
    """Select case that receives from ``channel``."""
    return SelectCase(channel, Direction.RECEIVE)


def _is_ready(channel: Optional[Channel], direction: Direction) -> bool:
    # A nil channel is never ready
    if channel is None:
        return False
    if direction is Direction.SEND:
        return channel.can_send()
    return channel.can_receive()


def _execute(index: int, channel: Channel, case: SelectCase) -> SelectResult:
    if case.direction is Direction.SEND:
        if not channel._try_send(case.value):
            raise AssertionError(f"select case {index} was ready but could not send")
        return SelectResult(index, None, True)

    received = channel._try_receive()
    if received is None:
        raise AssertionError(f"select case {index} was ready but could not receive")
    value, ok = received
    return SelectResult(index, value, ok)


async def select(
    scheduler: 'Scheduler',
    cases: Iterable[SelectCase],
    default: bool = False,
) -> SelectResult:
    """
    Run a select statement in the current task.

    :param scheduler: Scheduler driving the current task
    :param cases: Ordered candidate operations; a case whose channel is None
        is never ready
    :param default: Run the default branch instead of blocking
    :returns: SelectResult with the chosen case index (DEFAULT for the
        default branch), the received value and ok flag
    :raises ClosedChannelSendError: If a chosen send case's channel is closed
    """
    checked = validate_cases(cases)
    task = scheduler._require_task("select")

    resolved: List[Tuple[int, Optional[Channel], SelectCase]] = []
    for index, case in enumerate(checked):
        channel = None
        if case.channel is not None:
            channel = resolve_channel(case.channel, case.direction)
            scheduler._check_owner(channel)
            if case.direction is Direction.SEND:
                channel._check_value(case.value)
        resolved.append((index, channel, case))

    ready = [entry for entry in resolved if _is_ready(entry[1], entry[2].direction)]
    if ready:
        index, channel, case = ready[0] if len(ready) == 1 else scheduler._rng.choice(ready)
        scheduler._note_select()
        return _execute(index, channel, case)

    if default:
        return SelectResult(DEFAULT, None, False)

    operations = []
    for index, channel, case in resolved:
        if channel is None:
            continue
        op = PendingOperation(case.direction, channel, task.tid, case.value, index=index)
        channel._register(op)
        operations.append(op)

    return await scheduler._park(task, PendingWait(WaitKind.SELECT, tuple(operations)))
