"""Shared dataclasses for hardware detection."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Any

from ..errors import CpuError, HardwareMemoryError


class GPUVendor(str, enum.Enum):
    APPLE = "apple"
    NVIDIA = "nvidia"
    NONE = "none"

    @classmethod
    def parse(cls, value: GPUVendor | str) -> GPUVendor:
        if isinstance(value, GPUVendor):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            valid = ", ".join(v.value for v in cls)
            raise ValueError(f"unknown GPU vendor {value!r} (expected one of: {valid})")


_OPTIONAL_FIELDS = (
    "name",
    "driver_version",
    "cuda_version",
    "compute_capability",
    "temperature_c",
    "power_usage_w",
    "utilization_percent",
    "memory_used_mb",
    "memory_free_mb",
)


@dataclass(frozen=True)
class CapabilityRecord:
    """Normalized result of one GPU detection.

    ``memory_total_mb`` is always present (0 when there is no
    accelerator).  Everything else is best-effort.  When both
    ``memory_used_mb`` and ``memory_free_mb`` are set they sum to the
    total; use :meth:`from_memory` to have the missing half derived.
    """

    vendor: GPUVendor
    memory_total_mb: int = 0
    name: str | None = None
    driver_version: str | None = None
    cuda_version: str | None = None
    compute_capability: str | None = None
    temperature_c: float | None = None
    power_usage_w: float | None = None
    utilization_percent: float | None = None
    memory_used_mb: int | None = None
    memory_free_mb: int | None = None

    def __post_init__(self) -> None:
        if self.memory_total_mb < 0:
            raise ValueError("memory_total_mb must be non-negative")
        if self.vendor is GPUVendor.NONE:
            if self.memory_total_mb != 0:
                raise ValueError("a record without an accelerator has no memory")
            populated = [f for f in _OPTIONAL_FIELDS if getattr(self, f) is not None]
            if populated:
                raise ValueError(
                    f"a record without an accelerator cannot set {', '.join(populated)}"
                )
            return
        for attr in ("memory_used_mb", "memory_free_mb"):
            value = getattr(self, attr)
            if value is not None and value < 0:
                raise ValueError(f"{attr} must be non-negative")
        if self.memory_used_mb is not None and self.memory_free_mb is not None:
            if self.memory_used_mb + self.memory_free_mb != self.memory_total_mb:
                raise ValueError(
                    f"used ({self.memory_used_mb}) + free ({self.memory_free_mb}) "
                    f"!= total ({self.memory_total_mb})"
                )
        if self.utilization_percent is not None and not (
            0.0 <= self.utilization_percent <= 100.0
        ):
            raise ValueError("utilization_percent must be within 0..100")

    @classmethod
    def none(cls) -> CapabilityRecord:
        """The synthetic "no accelerator" record."""
        return cls(vendor=GPUVendor.NONE)

    @classmethod
    def from_memory(
        cls,
        vendor: GPUVendor,
        total_mb: int,
        used_mb: int | None = None,
        free_mb: int | None = None,
        **fields: Any,
    ) -> CapabilityRecord:
        """Build a record, deriving used/free from the total.

        Used memory wins when both are reported: utilities commonly
        exclude reserved memory from "free", so the reported pair rarely
        adds up.  Used is clamped to ``[0, total]``.
        """
        if used_mb is not None:
            used_mb = min(max(used_mb, 0), total_mb)
            free_mb = total_mb - used_mb
        elif free_mb is not None:
            free_mb = min(max(free_mb, 0), total_mb)
            used_mb = total_mb - free_mb
        return cls(
            vendor=vendor,
            memory_total_mb=total_mb,
            memory_used_mb=used_mb,
            memory_free_mb=free_mb,
            **fields,
        )

    @property
    def is_available(self) -> bool:
        return self.vendor is not GPUVendor.NONE

    def to_dict(self) -> dict[str, Any]:
        return {
            "gpu_type": self.vendor.value,
            "name": self.name,
            "cuda_version": self.cuda_version,
            "driver_version": self.driver_version,
            "compute_capability": self.compute_capability,
            "temperature_c": self.temperature_c,
            "power_usage_w": self.power_usage_w,
            "utilization_percent": self.utilization_percent,
            "memory_total_mb": self.memory_total_mb,
            "memory_used_mb": self.memory_used_mb,
            "memory_free_mb": self.memory_free_mb,
        }


@dataclass(frozen=True)
class ModeState:
    test_mode: bool = False
    error_simulation: bool = False
    simulated_backend: GPUVendor = GPUVendor.NONE


@dataclass(frozen=True)
class HostHardwareInfo:
    cpu_count: int
    cpu_brand: str
    memory_total: int  # KB
    memory_used: int  # KB
    platform: str  # "macos", "linux", "windows"

    def validate(self) -> None:
        if self.cpu_count == 0:
            raise CpuError("Invalid CPU count")
        if not self.cpu_brand.strip():
            raise CpuError("Invalid CPU brand information")
        if self.memory_total == 0:
            raise HardwareMemoryError("Invalid total memory value")
        if self.memory_used > self.memory_total:
            raise HardwareMemoryError("Used memory exceeds total memory")

    def to_dict(self) -> dict[str, Any]:
        return {
            "cpuCount": self.cpu_count,
            "cpuBrand": self.cpu_brand,
            "memoryTotal": self.memory_total,
            "memoryUsed": self.memory_used,
            "platform": self.platform,
        }


@dataclass
class DetectionReport:
    """Outcome of one real probe chain, kept for diagnostics."""

    record: CapabilityRecord
    backend: str | None = None
    diagnostics: list[str] = field(default_factory=list)
