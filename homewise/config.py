"""Runtime settings, read from ``HOMEWISE_*`` environment variables."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Mapping, Optional

DEFAULT_BACKENDS = ("apple", "nvidia")
DEFAULT_PROBE_TIMEOUT = 5.0

_TRUE_VALUES = {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class DetectorSettings:
    probe_timeout: float = DEFAULT_PROBE_TIMEOUT
    backends: tuple[str, ...] = DEFAULT_BACKENDS
    hw_retries: int = 3
    hw_retry_delay: float = 1.0
    single_flight: bool = False
    log_level: str = "WARNING"
    test_mode: bool = False
    simulated_backend: str = "none"


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUE_VALUES


def _number(env: Mapping[str, str], key: str, default: float, cast: type) -> float:
    raw = env.get(key)
    if raw is None or not raw.strip():
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{key} must be non-negative, got {raw!r}")
    return value


def _log_level(env: Mapping[str, str]) -> str:
    return env.get("HOMEWISE_LOG_LEVEL", "WARNING").strip().upper() or "WARNING"


def load_settings(env: Optional[Mapping[str, str]] = None) -> DetectorSettings:
    """Build settings from the environment (or an explicit mapping)."""
    env = os.environ if env is None else env

    backends = DEFAULT_BACKENDS
    raw_backends = env.get("HOMEWISE_BACKENDS", "")
    if raw_backends.strip():
        backends = tuple(
            name.strip().lower() for name in raw_backends.split(",") if name.strip()
        )

    probe_timeout = _number(env, "HOMEWISE_PROBE_TIMEOUT", DEFAULT_PROBE_TIMEOUT, float)
    if probe_timeout == 0:
        raise ValueError("HOMEWISE_PROBE_TIMEOUT must be greater than zero")

    return DetectorSettings(
        probe_timeout=probe_timeout,
        backends=backends,
        hw_retries=max(int(_number(env, "HOMEWISE_HW_RETRIES", 3, int)), 1),
        hw_retry_delay=_number(env, "HOMEWISE_HW_RETRY_DELAY", 1.0, float),
        single_flight=_flag(env.get("HOMEWISE_SINGLE_FLIGHT")),
        log_level=_log_level(env),
        test_mode=_flag(env.get("HOMEWISE_TEST_MODE")),
        simulated_backend=env.get("HOMEWISE_SIMULATED_BACKEND", "none").strip() or "none",
    )


def configure_logging(level: Optional[str] = None, verbose: bool = False) -> None:
    """Set up root logging for the CLI and server entry points."""
    if verbose:
        resolved = logging.DEBUG
    else:
        name = (level or _log_level(os.environ)).upper()
        resolved = getattr(logging, name, logging.WARNING)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
