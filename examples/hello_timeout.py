#!/usr/bin/env python3
"""
examples/hello_timeout.py

Request/reply with a timeout, hosted by the AnyIO backend. Timers are
channels, so a timeout is just another select case.
"""

import anyio

from cspylib import chan
from cspylib.runtime.backends import AnyIOBackend


async def server(backend, requests):
    """Reply to each request after the delay it asks for."""
    while True:
        request, ok = await chan.recv_ok(requests)
        if not ok:
            return
        delay, reply = request
        await backend.sleep(delay)
        await chan.send(reply, f"done after {delay}s")


async def call(backend, requests, delay: float, timeout: float):
    reply = chan.make(1)
    await chan.send(requests, (delay, reply))

    result = await chan.select([
        chan.recv_case(reply),
        chan.recv_case(backend.after(timeout)),
    ])
    if result.index == 1:
        return f"timed out after {result.value:.2f}s"
    return result.value


async def main(backend):
    print("=== Hello Timeout Example ===\n")

    requests = chan.make()
    chan.spawn(server, backend, requests, name="server")

    print(f"Fast call: {await call(backend, requests, 0.1, 0.5)}")
    print(f"Slow call: {await call(backend, requests, 1.0, 0.3)}")

    chan.close(requests)


async def run():
    backend = AnyIOBackend()
    await backend.run(main, backend)


if __name__ == "__main__":
    anyio.run(run)
