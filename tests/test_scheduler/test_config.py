"""
Test runtime configuration and the scheduler registry.
"""

import pytest

from cspylib import chan
from cspylib.runtime import (
    RuntimeConfig, RuntimeNotAvailableError, Scheduler, get_runtime, set_runtime
)


def test_config_defaults():
    config = RuntimeConfig()

    assert config.name == "scheduler"
    assert config.seed is None
    assert config.fail_fast is False
    assert config.trace is False


def test_config_from_env():
    config = RuntimeConfig.from_env({
        "CSPYLIB_NAME": "worker",
        "CSPYLIB_SEED": "42",
        "CSPYLIB_FAIL_FAST": "yes",
        "CSPYLIB_TRACE": "0",
    })

    assert config == RuntimeConfig(name="worker", seed=42, fail_fast=True, trace=False)


def test_config_from_empty_env():
    assert RuntimeConfig.from_env({}) == RuntimeConfig()


def test_config_rejects_bad_seed():
    with pytest.raises(ValueError, match="CSPYLIB_SEED"):
        RuntimeConfig.from_env({"CSPYLIB_SEED": "abc"})


def test_seeded_schedulers_choose_identically():
    def trial(seed):
        scheduler = Scheduler(RuntimeConfig(seed=seed))
        channels = [scheduler.make_channel(1) for _ in range(4)]
        picks = []

        async def main():
            for _ in range(50):
                for ch in channels:
                    if len(ch) == 0:
                        ch.offer(0)
                result = await chan.select([chan.recv_case(ch) for ch in channels])
                picks.append(result.index)

        scheduler.run(main)
        return picks

    assert trial(7) == trial(7)


def test_no_runtime_available():
    with pytest.raises(RuntimeNotAvailableError):
        get_runtime()

    with pytest.raises(RuntimeNotAvailableError):
        chan.make()


def test_default_runtime_outside_tasks(scheduler):
    set_runtime(scheduler)

    ch = chan.make(2)
    assert ch.scheduler is scheduler
    assert chan.cap(ch) == 2
    assert chan.self_id() is None


def test_driving_scheduler_wins_over_default(scheduler):
    other = Scheduler(RuntimeConfig(name="other"))
    set_runtime(other)

    async def main():
        return get_runtime()

    assert scheduler.run(main) is scheduler
    assert get_runtime() is other
