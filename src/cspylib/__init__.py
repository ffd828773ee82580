"""
cspylib

CSP-style lightweight tasks and channels for Python, scheduled cooperatively
on a single logical thread.
"""

__version__ = "0.1.0"

from cspylib import chan
from cspylib.runtime import (
    Scheduler, Channel, RuntimeConfig, SelectResult, DEFAULT,
    CSPError, DeadlockError, ClosedChannelSendError, DoubleCloseError,
    InvalidOperationError,
)

__all__ = [
    'chan',
    'Scheduler',
    'Channel',
    'RuntimeConfig',
    'SelectResult',
    'DEFAULT',
    'CSPError',
    'DeadlockError',
    'ClosedChannelSendError',
    'DoubleCloseError',
    'InvalidOperationError',
]
