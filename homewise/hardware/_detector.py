"""GPU detection orchestrator: mode checks, ordered fallback, caching."""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from typing import Iterable

from ..errors import ProbeError, SimulatedFailure
from ._base import GPUBackend, GPUBackendRegistry, build_registry
from ._modes import ModeController
from ._types import CapabilityRecord, DetectionReport, GPUVendor, ModeState

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT: float = 5.0


class ResultCache:
    """Holds the last successful detection. No TTL."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._record: CapabilityRecord | None = None

    def get(self) -> CapabilityRecord | None:
        with self._lock:
            return self._record

    def set(self, record: CapabilityRecord) -> None:
        with self._lock:
            self._record = record

    def clear(self) -> None:
        with self._lock:
            self._record = None


class GPUDetector:
    """Detect the machine's accelerator.

    Backends are tried strictly in the order given, each under its own
    ``probe_timeout``; the first success is cached and returned.  When
    every backend fails the "no accelerator" record is returned and the
    cache is left empty so a later call can discover new hardware.
    """

    def __init__(
        self,
        backends: GPUBackendRegistry | Iterable[GPUBackend] | None = None,
        modes: ModeController | None = None,
        probe_timeout: float = DEFAULT_PROBE_TIMEOUT,
        single_flight: bool = False,
    ) -> None:
        if probe_timeout <= 0:
            raise ValueError("probe_timeout must be greater than zero")
        if backends is None:
            registry = build_registry(("apple", "nvidia"))
        elif isinstance(backends, GPUBackendRegistry):
            registry = backends
        else:
            registry = GPUBackendRegistry(backends)
        self._registry = registry
        self._modes = modes if modes is not None else ModeController()
        self._cache = ResultCache()
        self.probe_timeout = probe_timeout
        self.single_flight = single_flight
        self._inflight: asyncio.Task[CapabilityRecord] | None = None
        self._inflight_lock = threading.Lock()
        self._report_lock = threading.Lock()
        self._last_report: DetectionReport | None = None

    @property
    def modes(self) -> ModeController:
        return self._modes

    @property
    def backends(self) -> list[GPUBackend]:
        return self._registry.backends

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def last_report(self) -> DetectionReport | None:
        with self._report_lock:
            return self._last_report

    @property
    def last_diagnostics(self) -> list[str]:
        report = self.last_report
        return list(report.diagnostics) if report else []

    def invalidate(self) -> None:
        """Drop the cached record so the next call probes again."""
        self._cache.clear()
        logger.debug("GPU detection cache cleared")

    async def detect_gpu(self) -> CapabilityRecord:
        state = self._modes.snapshot()
        if state.error_simulation:
            raise SimulatedFailure()
        if state.test_mode:
            return self.fixture_for(state)

        cached = self._cache.get()
        if cached is not None:
            logger.debug("Using cached GPU info")
            return cached

        if self.single_flight:
            return await self._shared_probe()
        return await self._probe_chain()

    def fixture_for(self, state: ModeState) -> CapabilityRecord:
        if state.simulated_backend is GPUVendor.NONE:
            return CapabilityRecord.none()
        backend = self._registry.get(state.simulated_backend)
        if backend is None:
            logger.debug(
                "No backend registered for simulated vendor %s",
                state.simulated_backend.value,
            )
            return CapabilityRecord.none()
        return backend.fixture()

    async def _shared_probe(self) -> CapabilityRecord:
        loop = asyncio.get_running_loop()
        with self._inflight_lock:
            task = self._inflight
            if task is None or task.done() or task.get_loop() is not loop:
                task = loop.create_task(self._probe_chain())
                self._inflight = task
            else:
                logger.debug("Joining in-flight GPU detection")
        # shield: one caller cancelling must not abort the shared probe
        return await asyncio.shield(task)

    async def _probe_chain(self) -> CapabilityRecord:
        diagnostics: list[str] = []
        started = time.monotonic()

        for backend in self._registry.backends:
            try:
                record = await asyncio.wait_for(
                    backend.detect(), timeout=self.probe_timeout
                )
            except asyncio.TimeoutError:
                diagnostics.append(
                    f"{backend.name}: timed out after {self.probe_timeout:.1f}s"
                )
                logger.warning(
                    "%s: probe timed out after %.1fs", backend.name, self.probe_timeout
                )
                continue
            except ProbeError as exc:
                diagnostics.append(f"{backend.name}: {exc}")
                logger.debug("%s: probe failed: %s", backend.name, exc)
                continue
            except Exception as exc:
                diagnostics.append(f"{backend.name}: detection failed ({exc})")
                logger.warning("%s: unexpected probe error", backend.name, exc_info=True)
                continue

            if record.vendor is not backend.vendor:
                diagnostics.append(
                    f"{backend.name}: returned a {record.vendor.value} record"
                )
                logger.warning(
                    "%s: ignoring record tagged %s", backend.name, record.vendor.value
                )
                continue

            self._cache.set(record)
            self._set_report(DetectionReport(record, backend.name, diagnostics))
            logger.info(
                "Detected %s GPU via %s in %.2fs",
                record.vendor.value,
                backend.name,
                time.monotonic() - started,
            )
            return record

        record = CapabilityRecord.none()
        self._set_report(DetectionReport(record, None, diagnostics))
        logger.info("No GPU detected: %s", "; ".join(diagnostics) or "no backends")
        return record

    def _set_report(self, report: DetectionReport) -> None:
        with self._report_lock:
            self._last_report = report


_detector: GPUDetector | None = None
_detector_lock = threading.Lock()


def get_detector() -> GPUDetector:
    """Process-wide detector configured from ``HOMEWISE_*`` settings."""
    global _detector
    with _detector_lock:
        if _detector is None:
            from ..config import load_settings

            settings = load_settings()
            modes = ModeController()
            if settings.test_mode:
                modes.enter_test_mode(settings.simulated_backend)
            _detector = GPUDetector(
                build_registry(settings.backends),
                modes=modes,
                probe_timeout=settings.probe_timeout,
                single_flight=settings.single_flight,
            )
        return _detector


def reset_detector() -> None:
    global _detector
    with _detector_lock:
        _detector = None


async def detect_gpu() -> CapabilityRecord:
    """One-liner API: detect the GPU with the process-wide detector."""
    return await get_detector().detect_gpu()
