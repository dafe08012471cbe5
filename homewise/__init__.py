"""
Homewise hardware detection.

Detects the machine's GPU and host hardware by querying system
utilities, with test-mode and error-simulation switches for running
without real hardware.
"""

from __future__ import annotations

__version__ = "0.3.0"

from .errors import (
    CommandError,
    HardwareError,
    HomewiseError,
    ParseFailure,
    ProbeError,
    SimulatedFailure,
    ToolUnavailable,
    UnsupportedHardware,
)
from .hardware import (
    CapabilityRecord,
    GPUBackend,
    GPUDetector,
    GPUVendor,
    HostHardwareInfo,
    ModeController,
    detect_gpu,
    get_hardware_info,
)

__all__ = [
    "CapabilityRecord",
    "CommandError",
    "GPUBackend",
    "GPUDetector",
    "GPUVendor",
    "HardwareError",
    "HomewiseError",
    "HostHardwareInfo",
    "ModeController",
    "ParseFailure",
    "ProbeError",
    "SimulatedFailure",
    "ToolUnavailable",
    "UnsupportedHardware",
    "__version__",
    "detect_gpu",
    "get_hardware_info",
]
