"""
Shared fixtures for cspylib tests.
"""

import pytest
from dataclasses import dataclass, field
from typing import Any, List

from cspylib.runtime import Scheduler, RuntimeConfig, reset_runtime


@dataclass
class EventLog:
    """Record events in the order tasks produce them."""
    events: List[Any] = field(default_factory=list)

    def record(self, *event):
        self.events.append(event[0] if len(event) == 1 else event)

    def clear(self):
        self.events.clear()


@pytest.fixture(autouse=True)
def clean_registry():
    """Make sure no default scheduler leaks between tests."""
    reset_runtime()
    yield
    reset_runtime()


@pytest.fixture
def scheduler():
    """Fresh, seeded scheduler for each test."""
    return Scheduler(RuntimeConfig(name="test", seed=1234))


@pytest.fixture
def event_log():
    return EventLog()
