#!/usr/bin/env python3
"""
examples/debug_deadlock.py

Show the deadlock report produced when every task is blocked.
"""

import logging

from cspylib import chan, DeadlockError
from cspylib.runtime import RuntimeConfig, Scheduler


async def waiter(ch):
    await chan.recv(ch)


async def main():
    left = chan.make()
    right = chan.make()

    chan.spawn(waiter, left, name="left-waiter")
    # Nobody ever receives from right, and the nil case is never ready
    await chan.select([chan.send_case(right, "never"), chan.recv_case(None)])


if __name__ == "__main__":
    logging.basicConfig(level=logging.DEBUG)
    scheduler = Scheduler(RuntimeConfig(name="debug", trace=True))
    try:
        scheduler.run(main)
    except DeadlockError as e:
        print("\nDeadlock detected:")
        for entry in e.blocked:
            print(f"  tid={entry.tid} name={entry.name} waiting on: {entry.waiting_on}")
