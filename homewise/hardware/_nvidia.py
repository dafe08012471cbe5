"""NVIDIA GPU detection backend (nvidia-smi)."""

from __future__ import annotations

import asyncio
import logging
import re

from ..errors import ParseFailure, ProbeError, UnsupportedHardware
from ._base import METRICS_TIMEOUT, GPUBackend
from ._types import CapabilityRecord, GPUVendor

logger = logging.getLogger(__name__)

_FULL_QUERY = (
    "nvidia-smi",
    "--query-gpu=name,memory.total,memory.used,memory.free,driver_version,compute_cap",
    "--format=csv,noheader,nounits",
)
_SIMPLE_QUERY = (
    "nvidia-smi",
    "--query-gpu=name,memory.total",
    "--format=csv,noheader,nounits",
)
_METRICS_QUERY = (
    "nvidia-smi",
    "--query-gpu=temperature.gpu,power.draw,utilization.gpu",
    "--format=csv,noheader,nounits",
)

_CUDA_VERSION_RE = re.compile(r"CUDA Version:\s*([\d.]+)")

# Values nvidia-smi prints when a field is not reported by the driver
_MISSING_VALUES = {"", "[n/a]", "n/a", "[not supported]", "not supported", "[unknown error]"}

# Compute capability by marketing name, for drivers without the compute_cap field
_COMPUTE_CAPABILITIES: dict[str, str] = {
    # Blackwell
    "RTX 5090": "12.0",
    "RTX 5080": "12.0",
    "RTX 5070": "12.0",
    "B200": "10.0",
    "B100": "10.0",
    # Ada Lovelace
    "RTX 4090": "8.9",
    "RTX 4080": "8.9",
    "RTX 4070": "8.9",
    "RTX 4060": "8.9",
    "L40S": "8.9",
    "L40": "8.9",
    "L4": "8.9",
    # Ampere
    "RTX 3090": "8.6",
    "RTX 3080": "8.6",
    "RTX 3070": "8.6",
    "RTX 3060": "8.6",
    "A6000": "8.6",
    "A5000": "8.6",
    "A4000": "8.6",
    "A100": "8.0",
    # Hopper
    "H200": "9.0",
    "H100": "9.0",
    # Turing
    "RTX 2080": "7.5",
    "RTX 2070": "7.5",
    "RTX 2060": "7.5",
    "GTX 1660": "7.5",
    "GTX 1650": "7.5",
    "T4": "7.5",
    # Volta / Pascal
    "V100": "7.0",
    "GTX 1080": "6.1",
    "GTX 1070": "6.1",
}


class NVIDIABackend(GPUBackend):
    NAME = "nvidia"

    @property
    def name(self) -> str:
        return self.NAME

    @property
    def vendor(self) -> GPUVendor:
        return GPUVendor.NVIDIA

    def fixture(self) -> CapabilityRecord:
        return CapabilityRecord(
            vendor=GPUVendor.NVIDIA,
            name="NVIDIA GeForce RTX 3080 (test)",
            driver_version="Test Driver",
            cuda_version="12.2",
            compute_capability="8.6",
            temperature_c=55.0,
            power_usage_w=120.0,
            utilization_percent=40.0,
            memory_total_mb=10240,
            memory_used_mb=2048,
            memory_free_mb=8192,
        )

    async def detect(self) -> CapabilityRecord:
        fields = await self._query_device()
        (temperature, power, utilization), cuda_version = await asyncio.gather(
            self._metrics(), self._cuda_version()
        )

        record = CapabilityRecord.from_memory(
            GPUVendor.NVIDIA,
            fields["memory_total_mb"],
            used_mb=fields.get("memory_used_mb"),
            name=fields["name"],
            driver_version=fields.get("driver_version"),
            cuda_version=cuda_version,
            compute_capability=fields.get("compute_capability"),
            temperature_c=temperature,
            power_usage_w=power,
            utilization_percent=utilization,
        )
        logger.info("nvidia: found %s with %d MB", record.name, record.memory_total_mb)
        return record

    async def _query_device(self) -> dict:
        """Primary CSV query, falling back to name + total memory."""
        result = await self._run(*_FULL_QUERY)
        if result.ok and result.stdout.strip():
            try:
                return parse_full_query(result.stdout)
            except ParseFailure as exc:
                logger.debug("nvidia: full query unusable, trying simple query: %s", exc)
        else:
            logger.debug(
                "nvidia: full query exited %d: %s",
                result.returncode,
                result.stderr.strip() or result.stdout.strip(),
            )

        result = await self._run(*_SIMPLE_QUERY)
        if not result.ok:
            raise UnsupportedHardware(
                f"nvidia-smi exited {result.returncode}: "
                f"{result.stderr.strip() or result.stdout.strip()}"
            )
        if not result.stdout.strip():
            raise UnsupportedHardware("nvidia-smi reported no GPUs")
        return parse_simple_query(result.stdout)

    async def _metrics(self) -> tuple[float | None, float | None, float | None]:
        try:
            result = await self._run(*_METRICS_QUERY, timeout=METRICS_TIMEOUT)
        except ProbeError as exc:
            logger.debug("nvidia: metrics unavailable: %s", exc)
            return None, None, None
        if not result.ok:
            logger.debug("nvidia: metrics query exited %d", result.returncode)
            return None, None, None
        return parse_metrics(result.stdout)

    async def _cuda_version(self) -> str | None:
        try:
            result = await self._run("nvidia-smi", timeout=METRICS_TIMEOUT)
        except ProbeError:
            return None
        if not result.ok:
            return None
        match = _CUDA_VERSION_RE.search(result.stdout)
        return match.group(1) if match else None


def _first_line(output: str) -> list[str]:
    for line in output.strip().splitlines():
        if line.strip():
            return [p.strip() for p in line.split(",")]
    raise ParseFailure("empty output")


def _optional_float(raw: str) -> float | None:
    if raw.strip().lower() in _MISSING_VALUES:
        return None
    try:
        return float(raw)
    except ValueError:
        return None


def _memory_mb(raw: str, field: str) -> int:
    try:
        return int(float(raw))
    except ValueError:
        raise ParseFailure(f"{field}={raw!r}")


def parse_full_query(output: str) -> dict:
    """Parse ``name,memory.total,memory.used,memory.free,driver_version,compute_cap``."""
    parts = _first_line(output)
    if len(parts) < 6:
        raise ParseFailure(f"expected 6 columns, got {len(parts)}")

    name = parts[0]
    compute_cap = parts[5] if parts[5].lower() not in _MISSING_VALUES else None
    used = parts[2]
    driver = parts[4] if parts[4].lower() not in _MISSING_VALUES else None
    return {
        "name": name,
        "memory_total_mb": _memory_mb(parts[1], "memory.total"),
        "memory_used_mb": (
            None if used.lower() in _MISSING_VALUES else _memory_mb(used, "memory.used")
        ),
        "driver_version": driver,
        "compute_capability": compute_cap or lookup_compute_capability(name),
    }


def parse_simple_query(output: str) -> dict:
    parts = _first_line(output)
    if len(parts) < 2:
        raise ParseFailure(f"expected 2 columns, got {len(parts)}")
    return {
        "name": parts[0],
        "memory_total_mb": _memory_mb(parts[1], "memory.total"),
        "compute_capability": lookup_compute_capability(parts[0]),
    }


def parse_metrics(output: str) -> tuple[float | None, float | None, float | None]:
    """Parse ``temperature.gpu,power.draw,utilization.gpu``; missing → ``None``."""
    try:
        parts = _first_line(output)
    except ParseFailure:
        return None, None, None
    parts += [""] * (3 - len(parts))
    temperature = _optional_float(parts[0])
    power = _optional_float(parts[1])
    utilization = _optional_float(parts[2])
    if utilization is not None and not 0.0 <= utilization <= 100.0:
        utilization = None
    return temperature, power, utilization


def lookup_compute_capability(gpu_name: str) -> str | None:
    """Look up compute capability for a GPU name. Tries longest match first."""
    upper = gpu_name.upper()
    for key in sorted(_COMPUTE_CAPABILITIES, key=len, reverse=True):
        if key.upper() in upper:
            return _COMPUTE_CAPABILITIES[key]
    return None
