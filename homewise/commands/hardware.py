"""gpu / hardware commands: print detection results."""

from __future__ import annotations

import asyncio
import json
import sys
from typing import Optional

import click

from homewise.errors import HardwareError, SimulatedFailure


def register(cli: click.Group) -> None:
    cli.add_command(gpu)
    cli.add_command(hardware)


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.option(
    "--test-mode",
    is_flag=True,
    help="Return the fixture record instead of probing real hardware.",
)
@click.option(
    "--backend",
    "-b",
    type=click.Choice(["apple", "nvidia", "none"]),
    default=None,
    help="Simulated backend used with --test-mode.",
)
@click.option(
    "--simulate-error", is_flag=True, help="Force the detection to fail."
)
@click.option(
    "--timeout",
    type=float,
    default=None,
    help="Per-backend probe timeout in seconds (default: HOMEWISE_PROBE_TIMEOUT or 5).",
)
def gpu(
    as_json: bool,
    test_mode: bool,
    backend: Optional[str],
    simulate_error: bool,
    timeout: Optional[float],
) -> None:
    """Detect the GPU and print its capabilities."""
    from homewise.hardware import get_detector

    try:
        detector = get_detector()
    except ValueError as exc:
        raise click.UsageError(str(exc))
    if timeout is not None:
        if timeout <= 0:
            raise click.BadParameter("must be greater than zero", param_hint="--timeout")
        detector.probe_timeout = timeout
    if test_mode:
        detector.modes.enter_test_mode(backend or "apple")
    elif backend is not None:
        detector.modes.set_simulated_backend(backend)
    if simulate_error:
        detector.modes.set_error_simulation(True)

    try:
        record = asyncio.run(detector.detect_gpu())
    except SimulatedFailure as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(record.to_dict(), indent=2))
        return

    click.secho("\n  GPU\n", bold=True)
    if not record.is_available:
        click.secho("    None detected", fg="yellow")
    else:
        click.echo(f"    {record.name or record.vendor.value}")
        click.echo(f"    Vendor: {record.vendor.value}")
        click.echo(f"    Memory: {record.memory_total_mb} MB")
        if record.memory_used_mb is not None:
            click.echo(
                f"      used: {record.memory_used_mb} MB  free: {record.memory_free_mb} MB"
            )
        if record.driver_version:
            click.echo(f"    Driver: {record.driver_version}")
        if record.cuda_version:
            click.echo(f"    CUDA: {record.cuda_version}")
        if record.compute_capability:
            click.echo(f"    Compute: {record.compute_capability}")
        if record.temperature_c is not None:
            click.echo(f"    Temperature: {record.temperature_c:.1f} C")
        if record.power_usage_w is not None:
            click.echo(f"    Power: {record.power_usage_w:.1f} W")
        if record.utilization_percent is not None:
            click.echo(f"    Utilization: {record.utilization_percent:.0f}%")

    if detector.last_diagnostics:
        click.echo()
        click.secho("  Diagnostics", bold=True, fg="yellow")
        for d in detector.last_diagnostics:
            click.echo(f"    • {d}")
    click.echo()


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def hardware(as_json: bool) -> None:
    """Show CPU, memory and platform information."""
    from homewise.config import load_settings
    from homewise.hardware import get_hardware_info

    try:
        settings = load_settings()
    except ValueError as exc:
        raise click.UsageError(str(exc))
    try:
        info = get_hardware_info(
            max_retries=settings.hw_retries, retry_delay=settings.hw_retry_delay
        )
    except HardwareError as exc:
        click.echo(f"Error getting hardware info: {exc}", err=True)
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(info.to_dict(), indent=2))
        return

    click.secho("\n  Host\n", bold=True)
    click.echo(f"    CPU: {info.cpu_brand} ({info.cpu_count} threads)")
    click.echo(
        f"    Memory: {info.memory_used / 1024**2:.1f} / "
        f"{info.memory_total / 1024**2:.1f} GB used"
    )
    click.echo(f"    Platform: {info.platform}")
    click.echo()
