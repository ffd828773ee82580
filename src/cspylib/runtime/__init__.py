"""
cspylib Runtime System

Cooperative scheduler, channels and select for CSP-style programs running on
a single logical thread. Backends (see ``cspylib.runtime.backends``) host a
scheduler inside an event loop so timers and host callbacks can wake tasks.
"""

from .data import (
    DEFAULT, Direction, TaskState, SelectCase, SelectResult, TaskInfo,
    RuntimeStatistics, BlockedTask,
    CSPError, DeadlockError, ClosedChannelSendError, DoubleCloseError,
    InvalidOperationError, RuntimeNotAvailableError, TaskCrashedError,
)
from .config import RuntimeConfig
from .channel import Channel, SendOnlyChannel, ReceiveOnlyChannel
from .scheduler import Scheduler, ExternalSource, sched_yield
from .select import select, send_case, recv_case
from .registry import get_runtime, set_runtime, reset_runtime

__all__ = [
    # Core abstractions
    'Scheduler',
    'ExternalSource',
    'Channel',
    'SendOnlyChannel',
    'ReceiveOnlyChannel',
    'RuntimeConfig',

    # Select
    'select',
    'send_case',
    'recv_case',
    'sched_yield',
    'SelectCase',
    'SelectResult',
    'DEFAULT',

    # Data types
    'Direction',
    'TaskState',
    'TaskInfo',
    'RuntimeStatistics',
    'BlockedTask',

    # Errors
    'CSPError',
    'DeadlockError',
    'ClosedChannelSendError',
    'DoubleCloseError',
    'InvalidOperationError',
    'RuntimeNotAvailableError',
    'TaskCrashedError',

    # Runtime registry
    'get_runtime',
    'set_runtime',
    'reset_runtime',
]
