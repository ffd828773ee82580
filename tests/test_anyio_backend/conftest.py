"""
Shared fixtures for AnyIO backend tests.
"""

import pytest_asyncio

from cspylib.runtime import RuntimeConfig
from cspylib.runtime.backends import AnyIOBackend


@pytest_asyncio.fixture
async def backend():
    """Fresh backend (and scheduler) for each test."""
    backend = AnyIOBackend(config=RuntimeConfig(name="anyio-test", seed=99))

    yield backend

    assert not backend.running
    assert backend.scheduler.external_sources == 0
