"""
Runtime Core

Low-level suspension traps and the argument validators shared by the
scheduler, channels and the select coordinator.

Task code never talks to the scheduler directly while suspended. It awaits a
``Trap``; the trap is yielded all the way up to ``Scheduler.drive()``, which
decides what to do with the task (requeue it or leave it parked) and later
resumes the coroutine with the value or exception recorded on the task.
"""

import inspect
from enum import Enum
from typing import Any, Coroutine, Iterable, List, Optional, Sequence

from cspylib.runtime.data import Direction, SelectCase


class TrapKind(Enum):
    YIELD = "yield"   # Go to the back of the ready queue
    PARK = "park"     # Stay blocked until a channel operation resumes us


class Trap:
    """Awaitable handed up to the scheduler at a suspension point."""

    __slots__ = ("kind",)

    def __init__(self, kind: TrapKind):
        self.kind = kind

    def __await__(self):
        return (yield self)

    def __repr__(self):
        return f"Trap({self.kind.value})"


YIELD = Trap(TrapKind.YIELD)
PARK = Trap(TrapKind.PARK)


# Validators

def validate_capacity(capacity: int) -> None:
    """
    Validate a channel capacity.

    :param capacity: Requested buffer size
    :raises TypeError: If capacity is not an integer
    :raises ValueError: If capacity is negative
    """
    if isinstance(capacity, bool) or not isinstance(capacity, int):
        raise TypeError("Channel capacity must be an integer")
    if capacity < 0:
        raise ValueError("Channel capacity cannot be negative")


def validate_task_name(name: Optional[str]) -> None:
    """Validate an optional task name."""
    if name is None:
        return
    if not isinstance(name, str):
        raise TypeError("Task name must be a string")
    if not name:
        raise ValueError("Task name cannot be empty")


def instantiate_work(work: Any, args: Sequence[Any]) -> Coroutine:
    """
    Turn spawnable work into a coroutine object.

    :param work: Coroutine function or coroutine object
    :param args: Arguments for a coroutine function
    :returns: The coroutine to drive
    :raises TypeError: If work is neither
    """
    if inspect.iscoroutine(work):
        if args:
            raise TypeError("Cannot pass arguments with an already created coroutine")
        return work

    if callable(work):
        coro = work(*args)
        if inspect.iscoroutine(coro):
            return coro
        raise TypeError(f"spawn() needs an async function, {work!r} returned {type(coro).__name__}")

    raise TypeError(f"spawn() needs an async function or coroutine, got {type(work).__name__}")


def validate_cases(cases: Iterable[SelectCase]) -> List[SelectCase]:
    """Validate select cases and return them as a list."""
    checked = []
    for case in cases:
        if not isinstance(case, SelectCase):
            raise TypeError(f"select() cases must be SelectCase, got {type(case).__name__}")
        if not isinstance(case.direction, Direction):
            raise TypeError(f"Invalid select direction: {case.direction!r}")
        checked.append(case)
    return checked
