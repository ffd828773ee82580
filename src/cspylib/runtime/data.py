"""
Runtime Data Types

Common data structures and type definitions shared by the scheduler,
channels and the select coordinator.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, TYPE_CHECKING

if TYPE_CHECKING:
    from cspylib.runtime.channel import Channel


# Index reported by select when the default branch ran
DEFAULT = -1


class TaskState(Enum):
    """Current state of a scheduler-managed task."""
    READY = "ready"        # Queued, waiting for its turn
    RUNNING = "running"    # Executing between two suspension points
    BLOCKED = "blocked"    # Parked on one or more channel wait queues
    DONE = "done"          # Finished, crashed or cancelled


class Direction(Enum):
    """Direction of a channel operation."""
    SEND = "send"
    RECEIVE = "receive"


class WaitKind(Enum):
    """What a blocked task is waiting for."""
    SEND = "send"
    RECEIVE = "receive"
    SELECT = "select"


@dataclass(eq=False)
class PendingOperation:
    """
    A send or receive a task has registered on a channel wait queue.

    Wait queues hold these records, never the task itself; the task is
    addressed through ``tid``. ``active`` is cleared exactly once, when the
    operation completes or is deregistered.
    """
    direction: Direction
    channel: 'Channel'
    tid: int
    value: Any = None
    index: int = 0
    active: bool = True


@dataclass
class PendingWait:
    """The wait a blocked task is parked on."""
    kind: WaitKind
    operations: Tuple[PendingOperation, ...] = ()


@dataclass
class Resumption:
    """Value or exception delivered to a task the next time it runs."""
    value: Any = None
    exc: Optional[BaseException] = None


@dataclass
class SelectCase:
    """One candidate operation of a select statement."""
    channel: Optional[Any]
    direction: Direction
    value: Any = None


@dataclass(frozen=True)
class SelectResult:
    """Outcome of a select: chosen case index, received value and ok flag."""
    index: int
    value: Any = None
    ok: bool = False

    @property
    def is_default(self) -> bool:
        return self.index == DEFAULT


@dataclass(frozen=True)
class BlockedTask:
    """One entry of a deadlock report."""
    tid: int
    name: Optional[str]
    waiting_on: str


@dataclass
class TaskInfo:
    """Information about a scheduler-managed task."""
    tid: int
    name: Optional[str]
    state: TaskState
    created_at: float
    switches: int = 0
    waiting_on: Optional[str] = None
    cancelled: bool = False
    error: Optional[BaseException] = None


@dataclass
class RuntimeStatistics:
    """Operational statistics from a scheduler."""
    name: str
    uptime_seconds: float
    total_tasks: int
    ready_tasks: int
    blocked_tasks: int
    total_spawned: int
    total_done: int
    total_cancelled: int = 0
    total_crashed: int = 0

    # Scheduling and message throughput
    context_switches: int = 0
    channels_created: int = 0
    messages_delivered: int = 0
    selects_resolved: int = 0

    # Outstanding external event sources
    external_sources: int = 0

    extra: Dict[str, Any] = field(default_factory=dict)


class CSPError(Exception):
    """Base exception for runtime-related errors."""
    pass


class ClosedChannelSendError(CSPError):
    """Raised when sending on a closed channel."""
    pass


class DoubleCloseError(CSPError):
    """Raised when closing a channel that is already closed."""
    pass


class InvalidOperationError(CSPError):
    """Raised for operations on absent channels or from the wrong context."""
    pass


class RuntimeNotAvailableError(CSPError):
    """Raised when no scheduler is registered or driving."""
    pass


class TaskCrashedError(CSPError):
    """Raised by a fail-fast scheduler when a task dies with an error."""

    def __init__(self, tid: int, name: Optional[str], error: BaseException):
        self.tid = tid
        self.name = name
        self.error = error
        super().__init__(f"Task {tid} ({name or 'unnamed'}) crashed: {error!r}")


class DeadlockError(CSPError):
    """
    Raised when no task is ready while tasks remain blocked and no external
    event source can wake them.
    """

    def __init__(self, blocked: List[BlockedTask]):
        self.blocked = blocked
        from cspylib.runtime.diagnostics import format_deadlock_report
        super().__init__(format_deadlock_report(blocked))
