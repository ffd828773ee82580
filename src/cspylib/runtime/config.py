"""
Runtime Configuration

Settings a scheduler is created with. Values can be given directly or read
from ``CSPYLIB_*`` environment variables.
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional


_TRUTHY = {"1", "true", "yes", "on"}


def _parse_bool(raw: Optional[str], default: bool) -> bool:
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in _TRUTHY


@dataclass
class RuntimeConfig:
    """
    Scheduler settings.

    :param name: Label used in logs and statistics
    :param seed: Seed for the select tie-break RNG; None seeds from the OS
    :param fail_fast: Abort ``drive()`` with TaskCrashedError when a task dies
        with an unrecovered error instead of only logging it
    :param trace: Log a debug line on every context switch
    """
    name: str = "scheduler"
    seed: Optional[int] = None
    fail_fast: bool = False
    trace: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "RuntimeConfig":
        """Build a config from CSPYLIB_SEED, CSPYLIB_FAIL_FAST and CSPYLIB_TRACE."""
        env = os.environ if environ is None else environ

        seed_raw = env.get("CSPYLIB_SEED")
        seed = None
        if seed_raw not in (None, ""):
            try:
                seed = int(seed_raw)
            except ValueError:
                raise ValueError(f"CSPYLIB_SEED must be an integer, got {seed_raw!r}")

        return cls(
            name=env.get("CSPYLIB_NAME", "scheduler") or "scheduler",
            seed=seed,
            fail_fast=_parse_bool(env.get("CSPYLIB_FAIL_FAST"), False),
            trace=_parse_bool(env.get("CSPYLIB_TRACE"), False),
        )
