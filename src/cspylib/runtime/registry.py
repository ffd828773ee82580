"""
Runtime Registry

Tracks which scheduler the module-level API (``cspylib.chan``) talks to.

Inside a task the answer is always the scheduler driving it. Outside of any
drive it is the default set with ``set_runtime()``. Schedulers are ordinary
instances; nothing here is required to use one directly.
"""

from contextvars import ContextVar, Token
from typing import Optional, TYPE_CHECKING

from cspylib.runtime.data import RuntimeNotAvailableError

if TYPE_CHECKING:
    from cspylib.runtime.scheduler import Scheduler


_driving: ContextVar[Optional["Scheduler"]] = ContextVar("cspylib_driving", default=None)
_default: Optional["Scheduler"] = None


def get_runtime() -> "Scheduler":
    """
    Get the active scheduler.

    :returns: The scheduler driving the current task, else the default
    :raises RuntimeNotAvailableError: If neither exists
    """
    scheduler = _driving.get()
    if scheduler is not None:
        return scheduler
    if _default is None:
        raise RuntimeNotAvailableError(
            "No scheduler available; call set_runtime() or use Scheduler methods directly"
        )
    return _default


def set_runtime(scheduler: "Scheduler") -> None:
    """Set the default scheduler used outside of a drive."""
    global _default
    _default = scheduler


def reset_runtime() -> None:
    """Forget the default scheduler."""
    global _default
    _default = None


def enter_drive(scheduler: "Scheduler") -> Token:
    return _driving.set(scheduler)


def exit_drive(token: Token) -> None:
    _driving.reset(token)
