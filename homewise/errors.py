"""Exception types shared by the detection backends and the command layer."""

from __future__ import annotations


class HomewiseError(RuntimeError):
    """Base class for every error raised by homewise."""


class SimulatedFailure(HomewiseError):
    """Raised by the detector while error simulation is switched on."""

    def __init__(self, message: str = "Simulated GPU error") -> None:
        super().__init__(message)


# ---------------------------------------------------------------------------
# Backend probe failures: absorbed by the detector's fallback chain
# ---------------------------------------------------------------------------


class ProbeError(HomewiseError):
    """A backend found nothing usable."""


class ToolUnavailable(ProbeError):
    """The external utility could not be located or executed."""

    def __init__(self, tool: str, reason: str = "not found") -> None:
        self.tool = tool
        super().__init__(f"{tool}: {reason}")


class UnsupportedHardware(ProbeError):
    """The utility ran but reported no matching accelerator."""


class ParseFailure(ProbeError):
    """The utility output did not match the expected schema."""

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"unparseable output: {reason}")


# ---------------------------------------------------------------------------
# Host hardware collector
# ---------------------------------------------------------------------------


class HardwareError(HomewiseError):
    """Host hardware information could not be retrieved or is invalid."""


class CpuError(HardwareError):
    pass


class HardwareMemoryError(HardwareError):
    pass


class CompatibilityError(HardwareError):
    pass


class HardwareSystemError(HardwareError):
    pass


class CommandError(HomewiseError):
    """Short, human-readable failure returned across the command boundary."""
