"""Test-mode and error-simulation switches read by every detection."""

from __future__ import annotations

import dataclasses
import logging
import threading

from ._types import GPUVendor, ModeState

logger = logging.getLogger(__name__)


class ModeController:
    """Lock-guarded mode flags.

    Individual setters update one field at a time.  ``enter_test_mode``
    and ``reset`` change several fields in one critical section, and
    ``snapshot`` reads all of them consistently, so a detection never
    sees test mode switched on with a stale simulated backend.
    """

    def __init__(self, initial: ModeState | None = None) -> None:
        self._lock = threading.Lock()
        self._state = initial or ModeState()

    def snapshot(self) -> ModeState:
        with self._lock:
            return self._state

    def _update(self, **changes: object) -> ModeState:
        with self._lock:
            self._state = dataclasses.replace(self._state, **changes)
            return self._state

    def set_test_mode(self, enabled: bool) -> None:
        self._update(test_mode=bool(enabled))
        logger.info("Test mode set to: %s", bool(enabled))

    def is_test_mode(self) -> bool:
        return self.snapshot().test_mode

    def set_simulated_backend(self, vendor: GPUVendor | str) -> None:
        parsed = GPUVendor.parse(vendor)
        self._update(simulated_backend=parsed)
        logger.info("Simulated backend set to: %s", parsed.value)

    def get_simulated_backend(self) -> GPUVendor:
        return self.snapshot().simulated_backend

    def set_error_simulation(self, enabled: bool) -> None:
        self._update(error_simulation=bool(enabled))
        logger.info("Error simulation set to: %s", bool(enabled))

    def is_error_simulation(self) -> bool:
        return self.snapshot().error_simulation

    def enter_test_mode(self, vendor: GPUVendor | str) -> None:
        """Switch test mode on and select *vendor* atomically."""
        parsed = GPUVendor.parse(vendor)
        self._update(test_mode=True, simulated_backend=parsed)
        logger.info("Test mode enabled with simulated backend: %s", parsed.value)

    def reset(self) -> None:
        with self._lock:
            self._state = ModeState()
        logger.info("Mode flags reset")
