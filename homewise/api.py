"""Command boundary consumed by the host application.

Every operation returns plain JSON-ready data or raises
:class:`~homewise.errors.CommandError` carrying a short message; the host
never receives a partially-populated record.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import load_settings
from .errors import CommandError, HardwareError, SimulatedFailure
from .hardware import get_detector, get_hardware_info_async

logger = logging.getLogger(__name__)


async def detect_gpu() -> dict[str, Any]:
    try:
        record = await get_detector().detect_gpu()
    except SimulatedFailure as exc:
        raise CommandError(str(exc))
    except Exception as exc:
        logger.exception("GPU detection failed")
        raise CommandError(f"GPU detection failed: {exc}")
    return record.to_dict()


async def get_hardware_info() -> dict[str, Any]:
    logger.debug("Handling get_hardware_info command")
    try:
        settings = load_settings()
        info = await get_hardware_info_async(
            max_retries=settings.hw_retries, retry_delay=settings.hw_retry_delay
        )
    except HardwareError as exc:
        logger.error("Error getting hardware info: %s", exc)
        raise CommandError(f"Error getting hardware info: {exc}")
    except Exception as exc:
        logger.exception("Error getting hardware info")
        raise CommandError(f"Error getting hardware info: {exc}")
    logger.debug(
        "CPU: %d x %s, memory %d/%d KB, platform %s",
        info.cpu_count,
        info.cpu_brand,
        info.memory_used,
        info.memory_total,
        info.platform,
    )
    return info.to_dict()


def set_test_mode(enabled: bool) -> None:
    get_detector().modes.set_test_mode(enabled)


def is_test_mode() -> bool:
    return get_detector().modes.is_test_mode()


def set_simulated_backend(vendor: str) -> None:
    try:
        get_detector().modes.set_simulated_backend(vendor)
    except ValueError as exc:
        raise CommandError(str(exc))


def simulate_error(enabled: bool) -> None:
    get_detector().modes.set_error_simulation(enabled)
