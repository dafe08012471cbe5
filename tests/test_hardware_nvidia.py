"""Tests for the NVIDIA backend (homewise.hardware._nvidia)."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

import pytest

from homewise.errors import ParseFailure, ToolUnavailable, UnsupportedHardware
from homewise.config import DEFAULT_PROBE_TIMEOUT
from homewise.hardware._base import METRICS_TIMEOUT, ToolResult
from homewise.hardware._detector import GPUDetector
from homewise.hardware._nvidia import (
    NVIDIABackend,
    lookup_compute_capability,
    parse_full_query,
    parse_metrics,
    parse_simple_query,
)
from homewise.hardware._types import GPUVendor

SMI_BANNER = """+-----------------------------------------------------------------------------+
| NVIDIA-SMI 535.104.05   Driver Version: 535.104.05   CUDA Version: 12.2     |
+-----------------------------------------------------------------------------+
"""


@pytest.fixture
def backend() -> NVIDIABackend:
    return NVIDIABackend()


def _fake_smi(responses: dict[str, ToolResult | Exception]) -> AsyncMock:
    """run_tool replacement keyed by the --query-gpu argument ("" for the banner)."""

    async def side_effect(argv, timeout=None):
        if argv[0] != "nvidia-smi":
            raise ToolUnavailable(argv[0])
        key = argv[1] if len(argv) > 1 else ""
        value = responses.get(key)
        if value is None:
            raise AssertionError(f"unexpected nvidia-smi call: {argv}")
        if isinstance(value, Exception):
            raise value
        return value

    return AsyncMock(side_effect=side_effect)


FULL = "--query-gpu=name,memory.total,memory.used,memory.free,driver_version,compute_cap"
SIMPLE = "--query-gpu=name,memory.total"
METRICS = "--query-gpu=temperature.gpu,power.draw,utilization.gpu"


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


class TestParsers:
    def test_full_query(self):
        fields = parse_full_query(
            "NVIDIA GeForce RTX 4090, 24564, 1024, 23108, 550.54.14, 8.9\n"
        )
        assert fields == {
            "name": "NVIDIA GeForce RTX 4090",
            "memory_total_mb": 24564,
            "memory_used_mb": 1024,
            "driver_version": "550.54.14",
            "compute_capability": "8.9",
        }

    def test_full_query_uses_first_gpu_only(self):
        fields = parse_full_query(
            "Tesla T4, 15360, 0, 15100, 535.1, 7.5\nTesla T4, 15360, 500, 14600, 535.1, 7.5\n"
        )
        assert fields["memory_used_mb"] == 0

    def test_full_query_missing_compute_cap_uses_table(self):
        fields = parse_full_query("NVIDIA A100-SXM4-40GB, 40960, 0, 40000, 470.1, [N/A]")
        assert fields["compute_capability"] == "8.0"

    def test_full_query_too_few_columns(self):
        with pytest.raises(ParseFailure):
            parse_full_query("RTX 3060, 12288")

    def test_full_query_bad_number(self):
        with pytest.raises(ParseFailure):
            parse_full_query("RTX 3060, lots, 0, 0, 1.0, 8.6")

    def test_simple_query(self):
        assert parse_simple_query("NVIDIA GeForce GTX 1080, 8192") == {
            "name": "NVIDIA GeForce GTX 1080",
            "memory_total_mb": 8192,
            "compute_capability": "6.1",
        }

    def test_empty_output(self):
        with pytest.raises(ParseFailure):
            parse_simple_query("\n")

    def test_metrics(self):
        assert parse_metrics("62, 180.52, 45\n") == (62.0, 180.52, 45.0)

    def test_metrics_not_supported(self):
        assert parse_metrics("[N/A], [Not Supported], 3") == (None, None, 3.0)

    def test_metrics_short_line(self):
        assert parse_metrics("40") == (40.0, None, None)

    def test_lookup_prefers_longest_match(self):
        assert lookup_compute_capability("NVIDIA L40S") == "8.9"
        assert lookup_compute_capability("Quadro P400") is None

    def test_lookup_blackwell(self):
        assert lookup_compute_capability("NVIDIA GeForce RTX 5090") == "12.0"
        assert lookup_compute_capability("NVIDIA B200") == "10.0"

    def test_full_query_missing_driver_version(self):
        fields = parse_full_query("Tesla T4, 15360, 0, 15360, [N/A], 7.5")
        assert fields["driver_version"] is None
        fields = parse_full_query("Tesla T4, 15360, 0, 15360, [Not Supported], 7.5")
        assert fields["driver_version"] is None


# ---------------------------------------------------------------------------
# detect
# ---------------------------------------------------------------------------


class TestDetect:
    @pytest.mark.asyncio
    async def test_full_detection(self, backend: NVIDIABackend):
        smi = _fake_smi(
            {
                FULL: ToolResult(0, "NVIDIA GeForce RTX 3060, 12288, 1500, 10500, 535.104.05, 8.6\n"),
                METRICS: ToolResult(0, "51, 35.10, 7\n"),
                "": ToolResult(0, SMI_BANNER),
            }
        )
        with patch("homewise.hardware._base.run_tool", smi):
            record = await backend.detect()

        assert record.vendor is GPUVendor.NVIDIA
        assert record.name == "NVIDIA GeForce RTX 3060"
        assert record.memory_total_mb == 12288
        assert record.memory_used_mb == 1500
        assert record.memory_free_mb == 12288 - 1500
        assert record.driver_version == "535.104.05"
        assert record.cuda_version == "12.2"
        assert record.compute_capability == "8.6"
        assert record.temperature_c == 51.0
        assert record.power_usage_w == 35.1
        assert record.utilization_percent == 7.0

    @pytest.mark.asyncio
    async def test_falls_back_to_simple_query(self, backend: NVIDIABackend):
        smi = _fake_smi(
            {
                FULL: ToolResult(2, "Field \"compute_cap\" is not a valid field to query."),
                SIMPLE: ToolResult(0, "Tesla V100-PCIE-16GB, 16384\n"),
                METRICS: ToolResult(0, "[N/A], [N/A], [N/A]"),
                "": ToolResult(0, "no banner"),
            }
        )
        with patch("homewise.hardware._base.run_tool", smi):
            record = await backend.detect()

        assert record.memory_total_mb == 16384
        assert record.compute_capability == "7.0"
        assert record.memory_used_mb is None
        assert record.memory_free_mb is None
        assert record.cuda_version is None
        assert record.temperature_c is None

    @pytest.mark.asyncio
    async def test_metrics_failure_does_not_fail_probe(self, backend: NVIDIABackend):
        smi = _fake_smi(
            {
                FULL: ToolResult(0, "RTX 4060, 8188, 100, 7900, 550.1, 8.9"),
                METRICS: ToolUnavailable("nvidia-smi", "timed out after 5.0s"),
                "": ToolUnavailable("nvidia-smi", "timed out after 5.0s"),
            }
        )
        with patch("homewise.hardware._base.run_tool", smi):
            record = await backend.detect()

        assert record.memory_total_mb == 8188
        assert record.power_usage_w is None

    @pytest.mark.asyncio
    async def test_hung_metrics_keep_the_device(self):
        async def hang_after_device_query(argv, timeout=None):
            if len(argv) > 1 and argv[1] == FULL:
                return ToolResult(0, "NVIDIA GeForce RTX 3060, 4096, 1024, 3072, 550.1, 8.6\n")
            await asyncio.sleep(timeout)
            raise ToolUnavailable(argv[0], f"timed out after {timeout:.1f}s")

        detector = GPUDetector([NVIDIABackend()])
        tools = AsyncMock(side_effect=hang_after_device_query)
        with patch("homewise.hardware._base.run_tool", tools):
            record = await detector.detect_gpu()

        assert record.vendor is GPUVendor.NVIDIA
        assert record.memory_total_mb == 4096
        assert record.driver_version == "550.1"
        assert record.cuda_version is None
        assert (record.temperature_c, record.power_usage_w) == (None, None)
        assert record.utilization_percent is None
        assert detector.last_diagnostics == []

    def test_metrics_budget_fits_probe_deadline(self):
        assert METRICS_TIMEOUT < DEFAULT_PROBE_TIMEOUT / 2

    @pytest.mark.asyncio
    async def test_tool_missing(self, backend: NVIDIABackend):
        smi = _fake_smi({FULL: ToolUnavailable("nvidia-smi")})
        with patch("homewise.hardware._base.run_tool", smi):
            with pytest.raises(ToolUnavailable):
                await backend.detect()

    @pytest.mark.asyncio
    async def test_driver_not_loaded(self, backend: NVIDIABackend):
        failure = ToolResult(
            9, "NVIDIA-SMI has failed because it couldn't communicate with the NVIDIA driver."
        )
        smi = _fake_smi({FULL: failure, SIMPLE: failure})
        with patch("homewise.hardware._base.run_tool", smi):
            with pytest.raises(UnsupportedHardware):
                await backend.detect()

    @pytest.mark.asyncio
    async def test_no_gpus_listed(self, backend: NVIDIABackend):
        smi = _fake_smi({FULL: ToolResult(0, ""), SIMPLE: ToolResult(0, "")})
        with patch("homewise.hardware._base.run_tool", smi):
            with pytest.raises(UnsupportedHardware):
                await backend.detect()

    def test_fixture_keeps_memory_invariant(self, backend: NVIDIABackend):
        fixture = backend.fixture()
        assert fixture.vendor is GPUVendor.NVIDIA
        assert fixture.memory_used_mb + fixture.memory_free_mb == fixture.memory_total_mb
