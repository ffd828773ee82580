#!/usr/bin/env python3
"""
examples/hello_channels.py

First example of using the cspylib chan module.
Spawns a producer and two workers connected by a buffered channel, then
collects their results over an unbuffered one.
"""

import logging

from cspylib import chan
from cspylib.runtime import RuntimeConfig, Scheduler


async def producer(jobs, count: int):
    """Send work items, then close the channel."""
    for n in range(count):
        print(f"[producer] Sending job {n}")
        await chan.send(jobs, n)
    chan.close(jobs)
    print(f"[producer] Closed jobs channel")


async def worker(name: str, jobs, results):
    """Square every job until the jobs channel is closed."""
    while True:
        job, ok = await chan.recv_ok(jobs)
        if not ok:
            print(f"[{name}] No more jobs")
            await chan.send(results, (name, None))
            return
        print(f"[{name}] Got job {job}")
        await chan.send(results, (name, job * job))


async def main():
    print("=== Hello Channels Example ===\n")

    jobs = chan.make(2)
    results = chan.make()

    chan.spawn(producer, jobs.send_only(), 6, name="producer")
    chan.spawn(worker, "worker1", jobs.recv_only(), results, name="worker1")
    chan.spawn(worker, "worker2", jobs.recv_only(), results, name="worker2")

    finished = 0
    squares = []
    while finished < 2:
        name, value = await chan.recv(results)
        if value is None:
            finished += 1
        else:
            squares.append(value)

    print(f"\nSquares: {sorted(squares)}")
    return sorted(squares)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    scheduler = Scheduler(RuntimeConfig.from_env())
    scheduler.run(main)

    stats = scheduler.get_statistics()
    print(f"Tasks spawned: {stats.total_spawned}, "
          f"context switches: {stats.context_switches}, "
          f"messages delivered: {stats.messages_delivered}")
