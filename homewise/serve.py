"""Local HTTP surface for the host application.

Exposes GPU detection, the host hardware snapshot and the test/admin
switches as JSON endpoints.  Requires the ``serve`` extra.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Optional

from pydantic import BaseModel

from . import __version__
from .config import load_settings
from .errors import HardwareError, SimulatedFailure
from .hardware import GPUDetector, get_detector, get_hardware_info_async

logger = logging.getLogger(__name__)


class ModeBody(BaseModel):
    enabled: bool
    backend: Optional[str] = None


class SimulateErrorBody(BaseModel):
    enabled: bool


def create_app(
    detector: Optional[GPUDetector] = None,
    *,
    hw_retries: int = 3,
    hw_retry_delay: float = 1.0,
) -> Any:
    """Create a FastAPI app bound to *detector* (default: the process-wide one)."""
    from fastapi import FastAPI, HTTPException

    det = detector if detector is not None else get_detector()
    started = time.time()

    app = FastAPI(title="Homewise Hardware", version=__version__)

    @app.get("/health")
    async def health() -> dict[str, Any]:
        state = det.modes.snapshot()
        cached = det.cache.get()
        return {
            "status": "ok",
            "backends": [b.name for b in det.backends],
            "test_mode": state.test_mode,
            "error_simulation": state.error_simulation,
            "cached_gpu": cached.vendor.value if cached else None,
            "uptime_seconds": int(time.time() - started),
        }

    @app.get("/v1/gpu")
    async def gpu() -> dict[str, Any]:
        try:
            record = await det.detect_gpu()
        except SimulatedFailure as exc:
            raise HTTPException(status_code=500, detail=str(exc))
        except Exception as exc:
            logger.exception("GPU detection failed")
            raise HTTPException(status_code=500, detail=f"GPU detection failed: {exc}")
        return record.to_dict()

    @app.get("/v1/gpu/diagnostics")
    async def diagnostics() -> dict[str, Any]:
        report = det.last_report
        return {
            "backend": report.backend if report else None,
            "diagnostics": det.last_diagnostics,
        }

    @app.get("/v1/hardware")
    async def hardware() -> dict[str, Any]:
        try:
            info = await get_hardware_info_async(hw_retries, hw_retry_delay)
        except HardwareError as exc:
            raise HTTPException(
                status_code=500, detail=f"Error getting hardware info: {exc}"
            )
        return info.to_dict()

    @app.get("/v1/test-mode")
    async def get_test_mode() -> dict[str, Any]:
        state = det.modes.snapshot()
        return {
            "enabled": state.test_mode,
            "backend": state.simulated_backend.value,
        }

    @app.put("/v1/test-mode")
    async def put_test_mode(body: ModeBody) -> dict[str, Any]:
        try:
            if body.enabled and body.backend is not None:
                det.modes.enter_test_mode(body.backend)
            else:
                if body.backend is not None:
                    det.modes.set_simulated_backend(body.backend)
                det.modes.set_test_mode(body.enabled)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc))
        return await get_test_mode()

    @app.put("/v1/simulate-error")
    async def put_simulate_error(body: SimulateErrorBody) -> dict[str, Any]:
        det.modes.set_error_simulation(body.enabled)
        return {"enabled": det.modes.is_error_simulation()}

    return app


def run_server(host: str = "127.0.0.1", port: int = 8765) -> None:
    """Start the hardware server (blocking)."""
    import uvicorn

    settings = load_settings()
    app = create_app(
        hw_retries=settings.hw_retries, hw_retry_delay=settings.hw_retry_delay
    )
    logger.info("Serving hardware detection on %s:%d", host, port)
    uvicorn.run(app, host=host, port=port, log_level="info")
