#!/usr/bin/env python3
"""
examples/hello_select.py

Fan-in with select: two producers at different rates, a quit channel, and a
default branch for polling.
"""

from cspylib import chan
from cspylib.runtime import Scheduler


async def ticker(name: str, out, count: int, every: int):
    for i in range(count):
        # Yield a few times to simulate work
        for _ in range(every):
            await chan.sched_yield()
        await chan.send(out, f"{name}-{i}")
    chan.close(out)


async def main():
    print("=== Hello Select Example ===\n")

    fast = chan.make()
    slow = chan.make()

    # Nothing is ready yet, so the default branch runs
    result = await chan.select([chan.recv_case(fast), chan.recv_case(slow)], default=True)
    print(f"Polling before start: default={result.is_default}")

    chan.spawn(ticker, "fast", fast, 5, 1)
    chan.spawn(ticker, "slow", slow, 2, 4)

    # A closed channel is replaced by None so its case is never ready again
    sources = [fast, slow]
    while any(ch is not None for ch in sources):
        result = await chan.select([chan.recv_case(ch) for ch in sources])
        if not result.ok:
            print(f"[main] Case {result.index} closed")
            sources[result.index] = None
            continue
        print(f"[main] Case {result.index}: {result.value}")

    print("\nAll producers finished")


if __name__ == "__main__":
    Scheduler().run(main)
