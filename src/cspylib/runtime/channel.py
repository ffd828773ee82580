"""
Channels

Typed, capacity-bounded FIFO channels. A channel with capacity 0 is a
rendezvous point: every send is handed directly to a receiver.

Channel state is only ever touched by the task that is currently running
(or by host code between ``drive()`` calls), so no locking is needed. Waking
a parked task never runs its code; it only puts the task back on the ready
queue.
"""

import itertools
import logging
from collections import deque
from typing import (
    Any, Deque, Generic, Optional, Tuple, TypeVar, Union, TYPE_CHECKING
)

from cspylib.runtime.core import validate_capacity
from cspylib.runtime.data import (
    ClosedChannelSendError, Direction, DoubleCloseError, InvalidOperationError,
    PendingOperation, PendingWait, WaitKind
)

if TYPE_CHECKING:
    from cspylib.runtime.scheduler import Scheduler

logger = logging.getLogger(__name__)

T = TypeVar("T")

_channel_ids = itertools.count(1)

# Default for `zero`: build a fresh zero value from elem_type on every use
NO_ZERO = object()


def _zero_for(elem_type: Optional[type]) -> Any:
    if elem_type is None:
        return None
    try:
        return elem_type()
    except Exception:
        return None


class Channel(Generic[T]):
    """
    A channel owned by one scheduler.

    Create channels with ``Scheduler.make_channel()`` or ``cspylib.chan.make()``.
    """

    def __init__(
        self,
        scheduler: 'Scheduler',
        capacity: int = 0,
        *,
        zero: Any = NO_ZERO,
        elem_type: Optional[type] = None,
    ):
        validate_capacity(capacity)
        if elem_type is not None and not isinstance(elem_type, type):
            raise TypeError("elem_type must be a type")

        self.cid = next(_channel_ids)
        self._scheduler = scheduler
        self._capacity = capacity
        self._elem_type = elem_type
        self._zero = zero

        self._buffer: Deque[T] = deque()
        self._senders: Deque[PendingOperation] = deque()
        self._receivers: Deque[PendingOperation] = deque()
        self._closed = False

    # =========================================================================
    # Queries
    # =========================================================================

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def zero(self) -> Any:
        """Value received once the channel is closed and drained."""
        if self._zero is NO_ZERO:
            return _zero_for(self._elem_type)
        return self._zero

    @property
    def elem_type(self) -> Optional[type]:
        return self._elem_type

    @property
    def scheduler(self) -> 'Scheduler':
        return self._scheduler

    @property
    def waiting_senders(self) -> int:
        return len(self._senders)

    @property
    def waiting_receivers(self) -> int:
        return len(self._receivers)

    def __len__(self) -> int:
        return len(self._buffer)

    def __repr__(self):
        state = " closed" if self._closed else ""
        return f"<Channel #{self.cid} cap={self._capacity} len={len(self._buffer)}{state}>"

    def can_send(self) -> bool:
        """True if a send would complete (or fail on a closed channel) without blocking."""
        return (
            self._closed
            or bool(self._receivers)
            or len(self._buffer) < self._capacity
        )

    def can_receive(self) -> bool:
        """True if a receive would complete without blocking."""
        return bool(self._buffer) or bool(self._senders) or self._closed

    # =========================================================================
    # Blocking operations (suspension points)
    # =========================================================================

    async def send(self, value: T) -> None:
        """
        Send a value, parking the calling task until it is accepted.

        :raises ClosedChannelSendError: If the channel is (or gets) closed
        :raises TypeError: If the value does not match the element type
        """
        self._check_value(value)
        task = self._scheduler._require_task("send")
        if self._try_send(value):
            return

        op = PendingOperation(Direction.SEND, self, task.tid, value)
        self._senders.append(op)
        await self._scheduler._park(task, PendingWait(WaitKind.SEND, (op,)))

    async def receive_with_ok(self) -> Tuple[T, bool]:
        """
        Receive a value, parking the calling task until one is available.

        :returns: ``(value, True)``, or ``(zero, False)`` once the channel is
            closed and drained
        """
        task = self._scheduler._require_task("receive")
        result = self._try_receive()
        if result is not None:
            return result

        op = PendingOperation(Direction.RECEIVE, self, task.tid)
        self._receivers.append(op)
        return await self._scheduler._park(task, PendingWait(WaitKind.RECEIVE, (op,)))

    async def receive(self) -> T:
        """Receive a value; returns the zero value once closed and drained."""
        value, _ok = await self.receive_with_ok()
        return value

    # =========================================================================
    # Non-blocking operations
    # =========================================================================

    def offer(self, value: T) -> bool:
        """
        Send without parking. Usable from host code between drives.

        :returns: True if the value was delivered or buffered
        :raises ClosedChannelSendError: If the channel is closed
        """
        self._check_value(value)
        return self._try_send(value)

    def poll(self) -> Optional[Tuple[T, bool]]:
        """Receive without parking; None if nothing is available."""
        return self._try_receive()

    def close(self) -> None:
        """
        Close the channel.

        Parked senders fail with ClosedChannelSendError and parked receivers
        get ``(zero, False)``. Both queues are drained before anyone is
        notified.

        :raises DoubleCloseError: If the channel is already closed
        """
        if self._closed:
            raise DoubleCloseError(f"close of closed channel {self!r}")
        self._closed = True

        senders = list(self._senders)
        self._senders.clear()
        for op in senders:
            if op.active:
                self._scheduler._complete(
                    op, exc=ClosedChannelSendError(f"send on closed channel {self!r}")
                )

        receivers = list(self._receivers)
        self._receivers.clear()
        for op in receivers:
            if op.active:
                self._scheduler._complete(op, (self.zero, False))

        logger.debug(f"Closed {self!r} (woke {len(senders)} senders, {len(receivers)} receivers)")

    # =========================================================================
    # Internals used by the scheduler and select coordinator
    # =========================================================================

    def _check_value(self, value: Any) -> None:
        if self._elem_type is not None and not isinstance(value, self._elem_type):
            raise TypeError(
                f"{self!r} carries {self._elem_type.__name__}, got {type(value).__name__}"
            )

    def _try_send(self, value: T) -> bool:
        if self._closed:
            raise ClosedChannelSendError(f"send on closed channel {self!r}")

        if self._receivers:
            op = self._receivers.popleft()
            self._scheduler._note_delivery()
            self._scheduler._complete(op, (value, True))
            return True

        if len(self._buffer) < self._capacity:
            self._buffer.append(value)
            return True

        return False

    def _try_receive(self) -> Optional[Tuple[T, bool]]:
        if self._buffer:
            value = self._buffer.popleft()
            if self._senders:
                op = self._senders.popleft()
                self._buffer.append(op.value)
                self._scheduler._complete(op)
            self._scheduler._note_delivery()
            return (value, True)

        if self._senders:
            op = self._senders.popleft()
            self._scheduler._complete(op)
            self._scheduler._note_delivery()
            return (op.value, True)

        if self._closed:
            return (self.zero, False)

        return None

    def _register(self, op: PendingOperation) -> None:
        if op.direction is Direction.SEND:
            self._senders.append(op)
        else:
            self._receivers.append(op)

    def _discard(self, op: PendingOperation) -> None:
        queue = self._senders if op.direction is Direction.SEND else self._receivers
        try:
            queue.remove(op)
        except ValueError:
            pass  # already drained by close()

    # =========================================================================
    # Directional views
    # =========================================================================

    def send_only(self) -> 'SendOnlyChannel[T]':
        return SendOnlyChannel(self)

    def recv_only(self) -> 'ReceiveOnlyChannel[T]':
        return ReceiveOnlyChannel(self)


class _ChannelView(Generic[T]):
    """Restricted reference to a channel."""

    direction: Direction

    def __init__(self, channel: Channel[T]):
        if isinstance(channel, _ChannelView):
            channel = channel.channel
        self._channel = channel

    @property
    def channel(self) -> Channel[T]:
        return self._channel

    @property
    def capacity(self) -> int:
        return self._channel.capacity

    @property
    def closed(self) -> bool:
        return self._channel.closed

    def __len__(self) -> int:
        return len(self._channel)

    def __repr__(self):
        return f"<{type(self).__name__} of {self._channel!r}>"

    def _forbidden(self, what: str):
        return InvalidOperationError(f"Cannot {what} on {self!r}")


class SendOnlyChannel(_ChannelView[T]):
    direction = Direction.SEND

    async def send(self, value: T) -> None:
        await self._channel.send(value)

    def offer(self, value: T) -> bool:
        return self._channel.offer(value)

    def close(self) -> None:
        self._channel.close()

    async def receive(self) -> T:
        raise self._forbidden("receive")

    async def receive_with_ok(self) -> Tuple[T, bool]:
        raise self._forbidden("receive")

    def poll(self):
        raise self._forbidden("receive")


class ReceiveOnlyChannel(_ChannelView[T]):
    direction = Direction.RECEIVE

    async def receive(self) -> T:
        return await self._channel.receive()

    async def receive_with_ok(self) -> Tuple[T, bool]:
        return await self._channel.receive_with_ok()

    def poll(self) -> Optional[Tuple[T, bool]]:
        return self._channel.poll()

    async def send(self, value: T) -> None:
        raise self._forbidden("send")

    def offer(self, value: T) -> bool:
        raise self._forbidden("send")

    def close(self) -> None:
        raise self._forbidden("close")


AnyChannel = Union[Channel, SendOnlyChannel, ReceiveOnlyChannel]


def resolve_channel(ref: Any, direction: Optional[Direction] = None) -> Channel:
    """
    Get the underlying channel of a channel or directional view.

    :param ref: Channel, view, or None
    :param direction: Direction the caller wants to use it in
    :raises InvalidOperationError: If ref is absent or forbids the direction
    """
    if ref is None:
        raise InvalidOperationError("Operation on a nil channel")
    if isinstance(ref, Channel):
        return ref
    if isinstance(ref, _ChannelView):
        if direction is not None and ref.direction is not direction:
            raise ref._forbidden(direction.value)
        return ref.channel
    raise InvalidOperationError(f"Not a channel: {ref!r}")
