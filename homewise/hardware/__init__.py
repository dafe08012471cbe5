"""Hardware detection subsystem for homewise.

GPU detection goes through :class:`GPUDetector`; host CPU/memory facts
come from :func:`get_hardware_info`.
"""

from __future__ import annotations

from ._base import GPUBackend, GPUBackendRegistry, build_registry, run_tool
from ._detector import (
    GPUDetector,
    ResultCache,
    detect_gpu,
    get_detector,
    reset_detector,
)
from ._host import get_hardware_info, get_hardware_info_async
from ._modes import ModeController
from ._types import CapabilityRecord, GPUVendor, HostHardwareInfo, ModeState

__all__ = [
    "CapabilityRecord",
    "GPUBackend",
    "GPUBackendRegistry",
    "GPUDetector",
    "GPUVendor",
    "HostHardwareInfo",
    "ModeController",
    "ModeState",
    "ResultCache",
    "build_registry",
    "detect_gpu",
    "get_detector",
    "get_hardware_info",
    "get_hardware_info_async",
    "reset_detector",
    "run_tool",
]
