"""Tests for homewise.hardware._host: host hardware collector."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, mock_open, patch

import pytest

from homewise.errors import CpuError, HardwareMemoryError
from homewise.hardware._host import (
    _get_cpu_brand,
    collect_hardware_info,
    get_hardware_info,
    get_hardware_info_async,
    platform_name,
)
from homewise.hardware._types import HostHardwareInfo


def _mock_virtual_memory(total_gb: float = 16.0, used_gb: float = 6.0) -> MagicMock:
    """Build a mock psutil virtual_memory result."""
    mock_vm = MagicMock()
    mock_vm.total = int(total_gb * (1024**3))
    mock_vm.used = int(used_gb * (1024**3))
    return mock_vm


def _good_info() -> HostHardwareInfo:
    return HostHardwareInfo(
        cpu_count=4,
        cpu_brand="Test CPU",
        memory_total=1024,
        memory_used=512,
        platform="linux",
    )


# ---------------------------------------------------------------------------
# collect_hardware_info
# ---------------------------------------------------------------------------


class TestCollect:
    def test_snapshot_in_kilobytes(self):
        with patch("psutil.cpu_count", return_value=8), patch(
            "psutil.virtual_memory", return_value=_mock_virtual_memory(16.0, 6.0)
        ), patch("homewise.hardware._host._get_cpu_brand", return_value="Test CPU"):
            info = collect_hardware_info()

        assert info.cpu_count == 8
        assert info.cpu_brand == "Test CPU"
        assert info.memory_total == 16 * 1024 * 1024
        assert info.memory_used == 6 * 1024 * 1024
        assert info.platform == platform_name()

    def test_no_cpus(self):
        with patch("psutil.cpu_count", return_value=None):
            with pytest.raises(CpuError):
                collect_hardware_info()

    def test_blank_brand(self):
        with patch("psutil.cpu_count", return_value=4), patch(
            "homewise.hardware._host._get_cpu_brand", return_value=""
        ):
            with pytest.raises(CpuError):
                collect_hardware_info()

    def test_zero_memory(self):
        with patch("psutil.cpu_count", return_value=4), patch(
            "psutil.virtual_memory", return_value=_mock_virtual_memory(0.0, 0.0)
        ), patch("homewise.hardware._host._get_cpu_brand", return_value="Test CPU"):
            with pytest.raises(HardwareMemoryError):
                collect_hardware_info()


class TestCpuBrand:
    def test_linux_model_name(self):
        cpuinfo = "processor\t: 0\nmodel name\t: AMD Ryzen 9 7950X 16-Core Processor\n"
        with patch("homewise.hardware._host.sys.platform", "linux"), patch(
            "builtins.open", mock_open(read_data=cpuinfo)
        ):
            assert _get_cpu_brand() == "AMD Ryzen 9 7950X 16-Core Processor"

    def test_macos_sysctl(self):
        completed = subprocess.CompletedProcess(
            args=["sysctl"], returncode=0, stdout="Apple M2 Pro\n", stderr=""
        )
        with patch("homewise.hardware._host.sys.platform", "darwin"), patch(
            "homewise.hardware._host.subprocess.run", return_value=completed
        ):
            assert _get_cpu_brand() == "Apple M2 Pro"

    def test_falls_back_to_platform(self):
        with patch("homewise.hardware._host.sys.platform", "darwin"), patch(
            "homewise.hardware._host.subprocess.run", side_effect=FileNotFoundError
        ), patch("homewise.hardware._host.platform.processor", return_value="arm"):
            assert _get_cpu_brand() == "arm"


# ---------------------------------------------------------------------------
# get_hardware_info retry loop
# ---------------------------------------------------------------------------


class TestRetry:
    def test_first_attempt_succeeds(self):
        with patch(
            "homewise.hardware._host.collect_hardware_info", return_value=_good_info()
        ) as collect, patch("homewise.hardware._host.time.sleep") as sleep:
            info = get_hardware_info()

        assert info == _good_info()
        assert collect.call_count == 1
        sleep.assert_not_called()

    def test_retries_then_succeeds(self):
        with patch(
            "homewise.hardware._host.collect_hardware_info",
            side_effect=[CpuError("flaky"), _good_info()],
        ) as collect, patch("homewise.hardware._host.time.sleep") as sleep:
            info = get_hardware_info(max_retries=3, retry_delay=0.5)

        assert info.cpu_count == 4
        assert collect.call_count == 2
        sleep.assert_called_once_with(0.5)

    def test_raises_last_error_after_max_retries(self):
        errors = [CpuError("one"), HardwareMemoryError("two"), HardwareMemoryError("three")]
        with patch(
            "homewise.hardware._host.collect_hardware_info", side_effect=errors
        ) as collect, patch("homewise.hardware._host.time.sleep") as sleep:
            with pytest.raises(HardwareMemoryError, match="three"):
                get_hardware_info(max_retries=3)

        assert collect.call_count == 3
        assert sleep.call_count == 2

    @pytest.mark.asyncio
    async def test_async_wrapper(self):
        with patch(
            "homewise.hardware._host.collect_hardware_info", return_value=_good_info()
        ):
            info = await get_hardware_info_async(max_retries=1, retry_delay=0)
        assert info == _good_info()


def test_platform_names():
    with patch("homewise.hardware._host.sys.platform", "darwin"):
        assert platform_name() == "macos"
    with patch("homewise.hardware._host.sys.platform", "win32"):
        assert platform_name() == "windows"
    with patch("homewise.hardware._host.sys.platform", "linux"):
        assert platform_name() == "linux"
