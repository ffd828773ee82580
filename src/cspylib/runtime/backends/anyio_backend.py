"""
AnyIO Backend

Hosts a Scheduler inside an anyio event loop so tasks can be woken by things
that happen outside the scheduler: timers and host-side anyio tasks.

The scheduler itself never waits on time. A timeout is a channel that a timer
fills after a delay, combined with select:

    async def fetch(backend, replies):
        result = await chan.select([
            chan.recv_case(replies),
            chan.recv_case(backend.after(0.5)),
        ])
        if result.index == 1:
            raise TimeoutError("no reply")
        return result.value

Every timer or host task holds an ExternalSource while it is pending, so the
scheduler does not mistake "waiting for the timer" for a deadlock.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

import anyio
import anyio.abc

from cspylib.runtime.channel import Channel
from cspylib.runtime.config import RuntimeConfig
from cspylib.runtime.data import InvalidOperationError
from cspylib.runtime.scheduler import ExternalSource, Scheduler

logger = logging.getLogger(__name__)


class AnyIOBackend:
    """
    Runtime backend driving a scheduler from an anyio event loop.

    Drive passes run synchronously; between passes the backend awaits until an
    external source delivers something.
    """

    def __init__(
        self,
        scheduler: Optional[Scheduler] = None,
        config: Optional[RuntimeConfig] = None,
    ):
        if scheduler is not None and config is not None:
            raise ValueError("Pass either a scheduler or a config, not both")
        self.scheduler = scheduler or Scheduler(config)

        self._task_group: Optional[anyio.abc.TaskGroup] = None
        self._wakeup: Optional[anyio.Event] = None

        # Statistics
        self._stats = {
            "drive_passes": 0,
            "timers_started": 0,
            "timers_fired": 0,
            "host_tasks_started": 0,
        }

    @property
    def running(self) -> bool:
        return self._task_group is not None

    @property
    def stats(self) -> dict:
        return dict(self._stats)

    # =========================================================================
    # Running
    # =========================================================================

    async def run(self, main: Any, *args: Any, name: str = "main") -> Any:
        """
        Spawn ``main`` and drive the scheduler until it finishes.

        :returns: Main's return value
        :raises: Main's own exception, or DeadlockError once nothing is ready
            and no timer or host task is pending
        """
        if self.running:
            raise InvalidOperationError("AnyIOBackend is already running")

        scheduler = self.scheduler
        tid = scheduler.spawn(main, *args, name=name)
        main_task = scheduler._tasks[tid]

        logger.debug(f"AnyIOBackend started ({scheduler!r})")
        failure: Optional[BaseException] = None

        async with anyio.create_task_group() as tg:
            self._task_group = tg
            try:
                await self._drive_until_done(main_task)
            except Exception as e:
                # Re-raised below, after the task group has unwound
                failure = e
            finally:
                self._task_group = None
                self._wakeup = None
                tg.cancel_scope.cancel()

        scheduler._cancel_remaining()
        if failure is not None:
            raise failure

        logger.debug(f"AnyIOBackend finished ({scheduler!r})")

        if main_task.error is not None:
            raise main_task.error
        return main_task.result

    async def _drive_until_done(self, main_task) -> None:
        scheduler = self.scheduler
        while True:
            self._wakeup = anyio.Event()
            self._stats["drive_passes"] += 1
            scheduler._drive(until=lambda: main_task.done)

            if main_task.done:
                return

            # Ready queue is empty here; without sources this raises
            scheduler._check_deadlock()
            await self._wakeup.wait()

    def notify(self) -> None:
        """Wake the drive loop after host code made a task ready."""
        if self._wakeup is not None:
            self._wakeup.set()

    def _require_running(self, what: str) -> anyio.abc.TaskGroup:
        if self._task_group is None:
            raise InvalidOperationError(f"{what}() needs a running AnyIOBackend")
        return self._task_group

    # =========================================================================
    # External event sources
    # =========================================================================

    def after(self, delay: float) -> Channel:
        """
        Channel that receives the elapsed time (seconds) once ``delay`` passed.

        The channel has capacity 1, so the timer never blocks even if nobody
        is listening anymore.
        """
        if delay < 0:
            raise ValueError("Timer delay cannot be negative")
        tg = self._require_running("after")

        channel = self.scheduler.make_channel(1)
        source = self.scheduler.hold(f"timer {delay}s")
        self._stats["timers_started"] += 1
        tg.start_soon(self._fire_timer, channel, source, delay)
        return channel

    async def _fire_timer(self, channel: Channel, source: ExternalSource, delay: float) -> None:
        started = anyio.current_time()
        try:
            await anyio.sleep(delay)
            elapsed = anyio.current_time() - started
            if not channel.closed:
                channel.offer(elapsed)
            self._stats["timers_fired"] += 1
            logger.debug(f"[timer] fired after {elapsed:.4f}s on {channel!r}")
        finally:
            source.release()
            self.notify()

    async def sleep(self, delay: float) -> None:
        """Park the calling task for ``delay`` seconds."""
        await self.after(delay).receive()

    def start_host_task(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        label: Optional[str] = None,
    ) -> None:
        """
        Run an anyio coroutine function next to the scheduler.

        It holds an external source until it returns, so tasks waiting on
        channels it feeds (via ``deliver()``) are not reported as deadlocked.
        """
        tg = self._require_running("start_host_task")
        source = self.scheduler.hold(label or getattr(func, "__name__", "host task"))
        self._stats["host_tasks_started"] += 1

        async def runner():
            try:
                await func(*args)
            finally:
                source.release()
                self.notify()

        tg.start_soon(runner)

    def deliver(self, channel: Channel, value: Any) -> bool:
        """
        Offer a value to a channel from host code and wake the drive loop.

        :returns: True if the value was accepted without blocking
        :raises ClosedChannelSendError: If the channel is closed
        """
        accepted = channel.offer(value)
        if accepted:
            self.notify()
        return accepted

    def close_channel(self, channel: Channel) -> None:
        """Close a channel from host code and wake the drive loop."""
        channel.close()
        self.notify()
