"""
Test directional views, typed channels and argument validation.
"""

import pytest

from cspylib import chan
from cspylib.runtime import (
    InvalidOperationError, ReceiveOnlyChannel, SendOnlyChannel
)


def test_directional_views(scheduler):
    async def producer(out):
        await chan.send(out, "hello")
        chan.close(out)

    async def main():
        ch = chan.make(1)
        chan.spawn(producer, ch.send_only())
        inbox = ch.recv_only()
        first = await chan.recv_ok(inbox)
        second = await inbox.receive_with_ok()
        return first, second

    assert scheduler.run(main) == (("hello", True), (None, False))


def test_views_forbid_the_other_direction(scheduler):
    ch = scheduler.make_channel(1)
    out = ch.send_only()
    inbox = ch.recv_only()

    assert isinstance(out, SendOnlyChannel)
    assert isinstance(inbox, ReceiveOnlyChannel)
    assert out.channel is ch
    assert inbox.capacity == 1

    with pytest.raises(InvalidOperationError):
        inbox.offer(1)
    with pytest.raises(InvalidOperationError):
        inbox.close()
    with pytest.raises(InvalidOperationError):
        out.poll()
    with pytest.raises(InvalidOperationError):
        chan.close(inbox)

    async def main():
        with pytest.raises(InvalidOperationError):
            await chan.recv(out)
        with pytest.raises(InvalidOperationError):
            await chan.send(inbox, 1)
        return "checked"

    assert scheduler.run(main) == "checked"


def test_view_of_view_unwraps(scheduler):
    ch = scheduler.make_channel()
    assert SendOnlyChannel(ch.send_only()).channel is ch


def test_typed_channel_rejects_wrong_type(scheduler):
    ch = scheduler.make_channel(1, elem_type=int)

    assert ch.elem_type is int
    assert ch.zero == 0
    with pytest.raises(TypeError):
        ch.offer("not an int")

    async def main():
        with pytest.raises(TypeError):
            await ch.send(1.5)
        await ch.send(3)
        return await ch.receive()

    assert scheduler.run(main) == 3


def test_operations_on_nil_channel(scheduler):
    async def main():
        with pytest.raises(InvalidOperationError):
            await chan.send(None, 1)
        with pytest.raises(InvalidOperationError):
            await chan.recv(None)
        with pytest.raises(InvalidOperationError):
            chan.close(None)
        with pytest.raises(InvalidOperationError):
            chan.length(None)
        with pytest.raises(InvalidOperationError):
            await chan.recv("not a channel")
        return "ok"

    assert scheduler.run(main) == "ok"


@pytest.mark.parametrize("capacity, error", [
    (-1, ValueError),
    (1.5, TypeError),
    ("2", TypeError),
    (True, TypeError),
])
def test_capacity_validation(scheduler, capacity, error):
    with pytest.raises(error):
        scheduler.make_channel(capacity)


def test_channel_repr(scheduler):
    ch = scheduler.make_channel(2)
    ch.offer(1)
    assert repr(ch) == f"<Channel #{ch.cid} cap=2 len=1>"

    ch.close()
    assert repr(ch).endswith("closed>")
