"""
Task Records

A Task is the scheduler's record of one lightweight unit of work: the
coroutine it drives, its state, and the explicit resumption token that
says what the coroutine receives the next time it runs.
"""

import time
from dataclasses import dataclass, field
from typing import Any, Coroutine, Optional

from cspylib.runtime.data import (
    PendingWait, Resumption, TaskInfo, TaskState
)
from cspylib.runtime.diagnostics import describe_wait


@dataclass(eq=False)
class Task:
    tid: int
    coro: Coroutine
    name: Optional[str] = None
    state: TaskState = TaskState.READY
    created_at: float = field(default_factory=time.time)

    resumption: Resumption = field(default_factory=Resumption)
    pending: Optional[PendingWait] = None

    switches: int = 0
    result: Any = None
    error: Optional[BaseException] = None
    cancelled: bool = False

    @property
    def done(self) -> bool:
        return self.state is TaskState.DONE

    def resume_with(self, value: Any = None, exc: Optional[BaseException] = None) -> None:
        self.resumption = Resumption(value, exc)

    def take_resumption(self) -> Resumption:
        resumption = self.resumption
        self.resumption = Resumption()
        return resumption

    def label(self) -> str:
        if self.name:
            return f"task {self.tid} ({self.name})"
        return f"task {self.tid}"

    def info(self) -> TaskInfo:
        return TaskInfo(
            tid=self.tid,
            name=self.name,
            state=self.state,
            created_at=self.created_at,
            switches=self.switches,
            waiting_on=describe_wait(self.pending) if self.pending else None,
            cancelled=self.cancelled,
            error=self.error,
        )

    def __repr__(self):
        return f"<Task {self.tid} name={self.name!r} state={self.state.value}>"
