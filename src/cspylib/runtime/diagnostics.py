"""
Runtime Diagnostics

Human readable descriptions of what blocked tasks are waiting on, used in
deadlock reports, TaskInfo snapshots and trace logging.
"""

from typing import List, Optional

from cspylib.runtime.data import (
    BlockedTask, Direction, PendingOperation, PendingWait, WaitKind
)


def describe_operation(op: PendingOperation) -> str:
    """Describe a single registered operation, e.g. ``send 'ping' to <Channel #1 ...>``."""
    if op.direction is Direction.SEND:
        return f"send {op.value!r} to {op.channel!r}"
    return f"receive from {op.channel!r}"


def describe_wait(wait: Optional[PendingWait]) -> str:
    """Describe everything a task is parked on."""
    if wait is None:
        return "nothing"

    if wait.kind is WaitKind.SELECT:
        if not wait.operations:
            return "select with no cases (blocks forever)"
        cases = "; ".join(
            f"case {op.index}: {describe_operation(op)}" for op in wait.operations
        )
        return f"select [{cases}]"

    if not wait.operations:
        return wait.kind.value
    return describe_operation(wait.operations[0])


def format_deadlock_report(blocked: List[BlockedTask]) -> str:
    """
    Format the message of a DeadlockError.

    One line per blocked task, ordered by task id:

        all tasks are asleep - deadlock! (2 blocked)
          task 1 (main): receive from <Channel #1 cap=0 len=0>
          task 2: receive from <Channel #1 cap=0 len=0>
    """
    lines = [f"all tasks are asleep - deadlock! ({len(blocked)} blocked)"]
    for entry in sorted(blocked, key=lambda b: b.tid):
        label = f"task {entry.tid}"
        if entry.name:
            label += f" ({entry.name})"
        lines.append(f"  {label}: {entry.waiting_on}")
    return "\n".join(lines)
