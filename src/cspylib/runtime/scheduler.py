"""
Scheduler

Owns the task arena and the ready queue, drives tasks from one suspension
point to the next, and detects deadlock.

Exactly one task runs at any instant. A task runs until it awaits a trap
(channel send/receive, select, yield) or finishes; nothing else can
interrupt it, so channel queues and buffers need no locks.
"""

import logging
import random
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Optional, Set

from cspylib.runtime import registry
from cspylib.runtime.channel import Channel, NO_ZERO
from cspylib.runtime.config import RuntimeConfig
from cspylib.runtime.core import (
    Trap, TrapKind, YIELD, PARK, instantiate_work, validate_task_name
)
from cspylib.runtime.data import (
    BlockedTask, DeadlockError, Direction, InvalidOperationError,
    PendingOperation, PendingWait, RuntimeStatistics, SelectResult,
    TaskCrashedError, TaskInfo, TaskState, WaitKind
)
from cspylib.runtime.diagnostics import describe_wait
from cspylib.runtime.task import Task

logger = logging.getLogger(__name__)


class ExternalSource:
    """
    A host-side event source that may still wake blocked tasks.

    While any source is held, an empty ready queue with blocked tasks is not
    a deadlock. Release it once it can no longer deliver anything.
    """

    def __init__(self, scheduler: "Scheduler", label: str):
        self.label = label
        self._scheduler = scheduler
        self._held = True

    @property
    def held(self) -> bool:
        return self._held

    def release(self) -> None:
        if self._held:
            self._held = False
            self._scheduler._release_source(self)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()

    def __repr__(self):
        state = "held" if self._held else "released"
        return f"<ExternalSource {self.label!r} {state}>"


class Scheduler:
    """
    Cooperative scheduler for CSP-style tasks.

    Each instance is independent; tests can create as many as they like.
    """

    def __init__(self, config: Optional[RuntimeConfig] = None):
        self.config = config or RuntimeConfig()

        # Task arena and ready queue
        self._tasks: Dict[int, Task] = {}
        self._ready: Deque[Task] = deque()
        self._next_tid = 1
        self._current: Optional[Task] = None
        self._driving = False

        # Select tie-break
        self._rng = random.Random(self.config.seed)

        # Host event sources that can still wake tasks
        self._sources: Set[ExternalSource] = set()

        # Statistics
        self._stats = {
            "total_spawned": 0,
            "total_done": 0,
            "total_cancelled": 0,
            "total_crashed": 0,
            "context_switches": 0,
            "channels_created": 0,
            "messages_delivered": 0,
            "selects_resolved": 0,
        }
        self._startup_time = time.time()

    def __repr__(self):
        return f"<Scheduler {self.config.name!r} tasks={len(self._tasks)} ready={len(self._ready)}>"

    # =========================================================================
    # Task and channel creation
    # =========================================================================

    def spawn(self, work: Any, *args: Any, name: Optional[str] = None) -> int:
        """
        Create a task and put it at the back of the ready queue.

        The task does not run until the scheduler reaches it.

        :param work: Async function (called with ``args``) or coroutine
        :param name: Optional label for logs and deadlock reports
        :returns: Task id
        :raises TypeError: If work is not async
        """
        validate_task_name(name)
        coro = instantiate_work(work, args)

        tid = self._next_tid
        self._next_tid += 1

        task = Task(tid=tid, coro=coro, name=name)
        self._tasks[tid] = task
        self._ready.append(task)
        self._stats["total_spawned"] += 1

        logger.debug(f"[spawn] {task.label()}")
        return tid

    def make_channel(
        self,
        capacity: int = 0,
        *,
        zero: Any = NO_ZERO,
        elem_type: Optional[type] = None,
    ) -> Channel:
        """Create a channel owned by this scheduler."""
        channel = Channel(self, capacity, zero=zero, elem_type=elem_type)
        self._stats["channels_created"] += 1
        return channel

    def hold(self, label: str = "external") -> ExternalSource:
        """Register an external event source (timer, host callback)."""
        source = ExternalSource(self, label)
        self._sources.add(source)
        return source

    def _release_source(self, source: ExternalSource) -> None:
        self._sources.discard(source)

    # =========================================================================
    # Driving
    # =========================================================================

    def drive(self) -> None:
        """
        Run ready tasks until the ready queue is empty.

        :raises DeadlockError: If tasks remain blocked and no external source
            is held; the blocked tasks are abandoned first
        :raises TaskCrashedError: In fail-fast mode, when a task crashes
        :raises InvalidOperationError: If called while already driving
        """
        self._drive()
        self._check_deadlock()

    def run(self, main: Any, *args: Any, name: str = "main") -> Any:
        """
        Spawn ``main`` and drive until it finishes.

        Tasks still alive when main finishes are cancelled.

        :returns: Main's return value
        :raises: Main's own exception, or DeadlockError
        """
        tid = self.spawn(main, *args, name=name)
        main_task = self._tasks[tid]

        self._drive(until=lambda: main_task.done)

        if not main_task.done:
            if self._sources and not self._ready:
                raise InvalidOperationError(
                    f"{main_task.label()} is waiting on external sources "
                    f"{sorted(s.label for s in self._sources)}; run it with an async backend"
                )
            self._check_deadlock()

        self._cancel_remaining()

        if main_task.error is not None:
            raise main_task.error
        return main_task.result

    def _drive(self, until: Optional[Callable[[], bool]] = None) -> None:
        if self._driving:
            raise InvalidOperationError(f"{self!r} is already driving")

        self._driving = True
        token = registry.enter_drive(self)
        try:
            while self._ready:
                task = self._ready.popleft()
                self._step(task)
                if until is not None and until():
                    break
        finally:
            self._driving = False
            registry.exit_drive(token)

    def _step(self, task: Task) -> None:
        task.state = TaskState.RUNNING
        task.switches += 1
        self._stats["context_switches"] += 1
        self._current = task

        if self.config.trace:
            logger.debug(f"[switch] -> {task.label()}")

        resumption = task.take_resumption()
        try:
            if resumption.exc is not None:
                trap = task.coro.throw(resumption.exc)
            else:
                trap = task.coro.send(resumption.value)
        except StopIteration as e:
            self._finish(task, result=e.value)
            return
        except Exception as e:
            self._finish(task, error=e)
            return
        finally:
            self._current = None

        if isinstance(trap, Trap):
            if trap.kind is TrapKind.YIELD:
                self._make_ready(task)
            elif task.state is not TaskState.BLOCKED:
                raise InvalidOperationError(f"{task.label()} parked without registering a wait")
            return

        # Anything else came from an awaitable this runtime does not drive
        task.resume_with(exc=InvalidOperationError(
            f"{task.label()} awaited a foreign awaitable {trap!r}; "
            f"only channel operations, select and sched_yield may suspend a task"
        ))
        self._make_ready(task)

    def _make_ready(self, task: Task) -> None:
        task.state = TaskState.READY
        self._ready.append(task)

    def _finish(self, task: Task, result: Any = None, error: Optional[BaseException] = None) -> None:
        task.state = TaskState.DONE
        task.pending = None
        task.result = result
        task.error = error
        self._tasks.pop(task.tid, None)
        self._stats["total_done"] += 1

        if error is None:
            logger.debug(f"[done] {task.label()}")
            return

        self._stats["total_crashed"] += 1
        logger.error(f"Task {task.label()} failed: {error!r}")
        if self.config.fail_fast:
            raise TaskCrashedError(task.tid, task.name, error) from error

    def _check_deadlock(self) -> None:
        if self._ready or self._sources:
            return

        blocked = [t for t in self._tasks.values() if t.state is TaskState.BLOCKED]
        if not blocked:
            return

        report = [BlockedTask(t.tid, t.name, describe_wait(t.pending)) for t in blocked]
        for task in blocked:
            self._abandon(task)

        error = DeadlockError(report)
        logger.error(str(error))
        raise error

    # =========================================================================
    # Cancellation
    # =========================================================================

    def cancel(self, tid: int) -> bool:
        """
        Remove a task, deregistering it from every wait queue first.

        :returns: True if the task was alive and is now cancelled
        :raises InvalidOperationError: If a task tries to cancel itself
        """
        task = self._tasks.get(tid)
        if task is None:
            return False
        if task is self._current:
            raise InvalidOperationError(f"{task.label()} cannot cancel itself")

        self._abandon(task)
        logger.debug(f"[cancel] {task.label()}")
        return True

    def _abandon(self, task: Task) -> None:
        self._deregister(task.pending)
        task.pending = None

        if task.state is TaskState.READY:
            try:
                self._ready.remove(task)
            except ValueError:
                pass

        task.state = TaskState.DONE
        task.cancelled = True
        self._tasks.pop(task.tid, None)
        self._stats["total_cancelled"] += 1

        # Cleanup code runs as the cancelled task; any suspension in it fails there
        previous = self._current
        self._current = task
        try:
            task.coro.close()
        except Exception as e:
            task.error = e
            logger.error(f"Task {task.label()} failed during cancellation: {e!r}")
        finally:
            self._current = previous

    def _cancel_remaining(self) -> None:
        leftovers = list(self._tasks.values())
        for task in leftovers:
            self._abandon(task)
        if leftovers:
            logger.debug(f"[run] main finished, cancelled {len(leftovers)} remaining tasks")

    @staticmethod
    def _deregister(wait: Optional[PendingWait], keep: Optional[PendingOperation] = None) -> None:
        if wait is None:
            return
        for op in wait.operations:
            if op is not keep and op.active:
                op.active = False
                op.channel._discard(op)

    # =========================================================================
    # Hooks for channels and select
    # =========================================================================

    def _require_task(self, what: str) -> Task:
        task = self._current
        if task is not None and task.cancelled:
            raise InvalidOperationError(f"{what}() called by {task.label()} while it is being cancelled")
        if not self._driving or task is None:
            raise InvalidOperationError(
                f"{what}() must be called from within a task driven by {self!r}"
            )
        return task

    def _check_owner(self, channel: Channel) -> None:
        if channel.scheduler is not self:
            raise InvalidOperationError(f"{channel!r} belongs to a different scheduler")

    async def _park(self, task: Task, wait: PendingWait) -> Any:
        task.state = TaskState.BLOCKED
        task.pending = wait
        return await PARK

    def _complete(
        self,
        op: PendingOperation,
        value: Any = None,
        exc: Optional[BaseException] = None,
    ) -> None:
        """
        Finish a registered operation and make its task ready.

        Every other operation the task registered (select cases) is removed
        from its channel before the task is queued, so it can only ever be
        completed once.
        """
        op.active = False
        task = self._tasks.get(op.tid)
        if task is None or task.state is not TaskState.BLOCKED:
            raise InvalidOperationError(f"Stale wake-up for task {op.tid}")

        wait = task.pending
        self._deregister(wait, keep=op)
        task.pending = None

        if exc is not None:
            task.resume_with(exc=exc)
        elif wait.kind is WaitKind.SELECT:
            self._stats["selects_resolved"] += 1
            if op.direction is Direction.SEND:
                task.resume_with(SelectResult(op.index, None, True))
            else:
                received, ok = value
                task.resume_with(SelectResult(op.index, received, ok))
        else:
            task.resume_with(value)

        self._make_ready(task)

    def _note_delivery(self) -> None:
        self._stats["messages_delivered"] += 1

    def _note_select(self) -> None:
        self._stats["selects_resolved"] += 1

    # =========================================================================
    # Introspection
    # =========================================================================

    def current_task(self) -> Optional[int]:
        """Id of the running task, or None outside of a task."""
        return self._current.tid if self._current else None

    def is_alive(self, tid: int) -> bool:
        return tid in self._tasks

    def get_task_info(self, tid: int) -> Optional[TaskInfo]:
        task = self._tasks.get(tid)
        return task.info() if task else None

    def list_tasks(self, state: Optional[TaskState] = None) -> List[TaskInfo]:
        return [
            task.info() for task in self._tasks.values()
            if state is None or task.state is state
        ]

    def blocked_tasks(self) -> List[BlockedTask]:
        return [
            BlockedTask(t.tid, t.name, describe_wait(t.pending))
            for t in self._tasks.values() if t.state is TaskState.BLOCKED
        ]

    @property
    def external_sources(self) -> int:
        return len(self._sources)

    def get_statistics(self) -> RuntimeStatistics:
        return RuntimeStatistics(
            name=self.config.name,
            uptime_seconds=time.time() - self._startup_time,
            total_tasks=len(self._tasks),
            ready_tasks=len(self._ready),
            blocked_tasks=sum(1 for t in self._tasks.values() if t.state is TaskState.BLOCKED),
            total_spawned=self._stats["total_spawned"],
            total_done=self._stats["total_done"],
            total_cancelled=self._stats["total_cancelled"],
            total_crashed=self._stats["total_crashed"],
            context_switches=self._stats["context_switches"],
            channels_created=self._stats["channels_created"],
            messages_delivered=self._stats["messages_delivered"],
            selects_resolved=self._stats["selects_resolved"],
            external_sources=len(self._sources),
        )


async def sched_yield() -> None:
    """Let every other ready task run before continuing."""
    await YIELD
