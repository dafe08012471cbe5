"""Host CPU/memory/platform snapshot using psutil and platform."""

from __future__ import annotations

import asyncio
import logging
import platform
import subprocess
import sys
import time

from ..errors import CpuError, HardwareError, HardwareMemoryError, HardwareSystemError
from ._types import HostHardwareInfo

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_DELAY_S = 1.0

_PLATFORM_NAMES = {"darwin": "macos", "win32": "windows", "cygwin": "windows"}


def collect_hardware_info() -> HostHardwareInfo:
    """Take one validated snapshot of the host's CPU and memory."""
    import psutil

    cpu_count = psutil.cpu_count(logical=True) or 0
    if cpu_count == 0:
        raise CpuError("No CPU cores detected")

    brand = _get_cpu_brand()
    if not brand:
        raise CpuError("Failed to retrieve CPU information")

    try:
        ram = psutil.virtual_memory()
    except (OSError, RuntimeError) as exc:
        raise HardwareMemoryError(f"Failed to read system memory: {exc}")
    if ram.total == 0:
        raise HardwareMemoryError("Failed to detect system memory")

    info = HostHardwareInfo(
        cpu_count=cpu_count,
        cpu_brand=brand,
        memory_total=ram.total // 1024,
        memory_used=ram.used // 1024,
        platform=platform_name(),
    )
    info.validate()
    return info


def get_hardware_info(
    max_retries: int = MAX_RETRIES, retry_delay: float = RETRY_DELAY_S
) -> HostHardwareInfo:
    """Collect host hardware info, retrying with a fixed delay."""
    last_error: HardwareError | None = None
    for attempt in range(1, max_retries + 1):
        try:
            return collect_hardware_info()
        except HardwareError as exc:
            last_error = exc
            logger.warning(
                "Hardware info attempt %d/%d failed: %s", attempt, max_retries, exc
            )
        if attempt < max_retries:
            time.sleep(retry_delay)

    if last_error is not None:
        raise last_error
    raise HardwareSystemError(
        "Failed to retrieve hardware information after multiple attempts"
    )


async def get_hardware_info_async(
    max_retries: int = MAX_RETRIES, retry_delay: float = RETRY_DELAY_S
) -> HostHardwareInfo:
    return await asyncio.to_thread(get_hardware_info, max_retries, retry_delay)


def platform_name() -> str:
    return _PLATFORM_NAMES.get(sys.platform, sys.platform)


def _get_cpu_brand() -> str:
    try:
        if sys.platform == "darwin":
            result = subprocess.run(
                ["sysctl", "-n", "machdep.cpu.brand_string"],
                capture_output=True,
                text=True,
                timeout=5,
            )
            if result.returncode == 0 and result.stdout.strip():
                return result.stdout.strip()
        elif sys.platform == "linux":
            with open("/proc/cpuinfo") as f:
                for line in f:
                    if line.lower().startswith("model name") and ":" in line:
                        return line.split(":", 1)[1].strip()
    except (OSError, subprocess.SubprocessError) as exc:
        logger.debug("CPU brand lookup failed: %s", exc)
    return (platform.processor() or platform.machine()).strip()
