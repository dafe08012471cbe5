"""Abstract GPU backend base class, subprocess helper and registry."""

from __future__ import annotations

import abc
import asyncio
import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..errors import ToolUnavailable
from ._types import CapabilityRecord, GPUVendor

logger = logging.getLogger(__name__)

# Upper bound for a single external utility invocation.  The detector
# enforces its own per-backend deadline on top of this.
DEFAULT_TOOL_TIMEOUT: float = 10.0

# Budget for best-effort metric sub-calls made once the device is known.
# Must stay well inside the detector's default per-backend deadline.
METRICS_TIMEOUT: float = 2.0


@dataclass(frozen=True)
class ToolResult:
    returncode: int
    stdout: str
    stderr: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_tool(
    argv: Sequence[str], timeout: float = DEFAULT_TOOL_TIMEOUT
) -> ToolResult:
    """Run an external utility and capture its output.

    Raises :class:`ToolUnavailable` when the executable cannot be spawned
    or does not finish within *timeout* (the child is killed).
    """
    tool = argv[0]
    try:
        process = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError:
        raise ToolUnavailable(tool)
    except OSError as exc:
        raise ToolUnavailable(tool, f"could not be executed ({exc})")

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        if process.returncode is None:
            process.kill()
        await process.wait()
        raise ToolUnavailable(tool, f"timed out after {timeout:.1f}s")
    except asyncio.CancelledError:
        if process.returncode is None:
            process.kill()
        await asyncio.shield(process.wait())
        raise

    return ToolResult(
        returncode=process.returncode if process.returncode is not None else -1,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )


class GPUBackend(abc.ABC):
    """Base class for GPU detection backends.

    ``detect`` returns a populated record or raises a
    :class:`~homewise.errors.ProbeError` subclass.
    """

    @property
    @abc.abstractmethod
    def name(self) -> str: ...

    @property
    @abc.abstractmethod
    def vendor(self) -> GPUVendor: ...

    @abc.abstractmethod
    async def detect(self) -> CapabilityRecord: ...

    @abc.abstractmethod
    def fixture(self) -> CapabilityRecord:
        """Fixed record returned in test mode for this vendor."""

    async def _run(self, *argv: str, timeout: float = DEFAULT_TOOL_TIMEOUT) -> ToolResult:
        result = await run_tool(argv, timeout=timeout)
        logger.debug("%s: %s exited %d", self.name, argv[0], result.returncode)
        return result


class GPUBackendRegistry:
    """Ordered collection of GPU backends, first registered is tried first."""

    def __init__(self, backends: Iterable[GPUBackend] = ()) -> None:
        self._backends: list[GPUBackend] = []
        for backend in backends:
            self.register(backend)

    def register(self, backend: GPUBackend) -> None:
        for existing in self._backends:
            if existing.name == backend.name:
                return
        self._backends.append(backend)

    @property
    def backends(self) -> list[GPUBackend]:
        return list(self._backends)

    def get(self, vendor: GPUVendor) -> GPUBackend | None:
        for backend in self._backends:
            if backend.vendor is vendor:
                return backend
        return None

    def __len__(self) -> int:
        return len(self._backends)


def _known_backends() -> dict[str, type[GPUBackend]]:
    from ._apple import AppleBackend
    from ._nvidia import NVIDIABackend

    return {
        AppleBackend.NAME: AppleBackend,
        NVIDIABackend.NAME: NVIDIABackend,
    }


def build_registry(names: Sequence[str]) -> GPUBackendRegistry:
    """Instantiate backends by name, in priority order."""
    known = _known_backends()
    registry = GPUBackendRegistry()
    for name in names:
        try:
            registry.register(known[name]())
        except KeyError:
            raise ValueError(
                f"unknown GPU backend {name!r} (expected one of: {', '.join(known)})"
            )
    return registry
