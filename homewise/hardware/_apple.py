"""Apple Silicon GPU detection backend (ioreg + powermetrics)."""

from __future__ import annotations

import logging
import re

from ..errors import ParseFailure, ProbeError, UnsupportedHardware
from ._base import METRICS_TIMEOUT, GPUBackend
from ._types import CapabilityRecord, GPUVendor

logger = logging.getLogger(__name__)

_IOREG_ARGS = ("ioreg", "-l", "-w0", "-r", "-c", "AGXAccelerator", "-d", "1")
_POWERMETRICS_ARGS = (
    "powermetrics",
    "--samplers",
    "gpu_power",
    "-i",
    "1000",
    "-n",
    "1",
)

# ioreg omits the memory property on some unified-memory machines
_DEFAULT_MEMORY_MB = 8192

_CHIP_RE = re.compile(r"\b(M[1-9])(?:\s+(Pro|Max|Ultra))?\b")
_MEMORY_RE = re.compile(r'"gpu-memory-total-size"\s*=\s*(\S+)')

_UTILIZATION_RE = re.compile(
    r"GPU (?:HW )?active(?: residency)?:\s*(\d+(?:\.\d+)?)\s*%", re.IGNORECASE
)
_POWER_RE = re.compile(r"GPU Power:\s*(\d+(?:\.\d+)?)\s*(mW|W)\b")
_TEMPERATURE_RE = re.compile(r"GPU die temperature:\s*(\d+(?:\.\d+)?)\s*C\b")


class AppleBackend(GPUBackend):
    NAME = "apple"

    @property
    def name(self) -> str:
        return self.NAME

    @property
    def vendor(self) -> GPUVendor:
        return GPUVendor.APPLE

    def fixture(self) -> CapabilityRecord:
        return CapabilityRecord(
            vendor=GPUVendor.APPLE,
            name="Apple M1 (test)",
            driver_version="Test Driver",
            temperature_c=45.0,
            power_usage_w=15.0,
            utilization_percent=30.0,
            memory_total_mb=8192,
            memory_used_mb=2048,
            memory_free_mb=6144,
        )

    async def detect(self) -> CapabilityRecord:
        result = await self._run(*_IOREG_ARGS)
        if not result.ok:
            raise UnsupportedHardware(
                f"ioreg exited {result.returncode}: {result.stderr.strip()}"
            )
        logger.debug("apple: raw ioreg output: %s", result.stdout)

        name, memory_mb = parse_ioreg(result.stdout)
        utilization, power, temperature = await self._metrics()
        logger.info("apple: found %s with %d MB", name, memory_mb)

        return CapabilityRecord(
            vendor=GPUVendor.APPLE,
            name=name,
            memory_total_mb=memory_mb,
            temperature_c=temperature,
            power_usage_w=power,
            utilization_percent=utilization,
        )

    async def _metrics(self) -> tuple[float | None, float | None, float | None]:
        """GPU utilization, power and temperature; ``None`` where unknown."""
        try:
            result = await self._run(*_POWERMETRICS_ARGS, timeout=METRICS_TIMEOUT)
        except ProbeError as exc:
            logger.debug("apple: metrics unavailable: %s", exc)
            return None, None, None
        if not result.ok:
            logger.warning("apple: powermetrics failed: %s", result.stderr.strip())
            return None, None, None
        return parse_powermetrics(result.stdout)


def parse_ioreg(output: str) -> tuple[str, int]:
    """Extract the chip name and GPU memory (MB) from ``ioreg`` output."""
    if "AGXAccelerator" not in output and "gpu-memory-total-size" not in output:
        raise UnsupportedHardware("no AGXAccelerator in ioreg output")

    match = _CHIP_RE.search(output)
    if not match:
        raise UnsupportedHardware("No Apple Silicon GPU found")
    chip = match.group(1)
    if match.group(2):
        chip = f"{chip} {match.group(2)}"

    memory_mb = _DEFAULT_MEMORY_MB
    mem_match = _MEMORY_RE.search(output)
    if mem_match:
        try:
            memory_mb = int(mem_match.group(1).strip('"'))
        except ValueError:
            raise ParseFailure(f"gpu-memory-total-size={mem_match.group(1)!r}")
    return f"Apple {chip}", memory_mb


def parse_powermetrics(
    output: str,
) -> tuple[float | None, float | None, float | None]:
    utilization: float | None = None
    power: float | None = None
    temperature: float | None = None

    match = _UTILIZATION_RE.search(output)
    if match:
        utilization = min(float(match.group(1)), 100.0)

    match = _POWER_RE.search(output)
    if match:
        power = float(match.group(1))
        if match.group(2) == "mW":
            power = round(power / 1000.0, 3)

    match = _TEMPERATURE_RE.search(output)
    if match:
        temperature = float(match.group(1))

    return utilization, power, temperature
