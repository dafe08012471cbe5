"""Serve command: local HTTP endpoint for the host application."""

from __future__ import annotations

import sys

import click


def register(cli: click.Group) -> None:
    cli.add_command(serve)


@click.command()
@click.option("--port", "-p", default=8765, help="Port to listen on.")
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
def serve(port: int, host: str) -> None:
    """Serve GPU and hardware detection over HTTP.

    Endpoints: /v1/gpu, /v1/hardware, /v1/test-mode, /v1/simulate-error
    and /health.
    """
    try:
        from homewise.serve import run_server
    except ImportError:
        click.echo(
            "Error: the server needs extra dependencies.\n"
            "  pip install 'homewise-hardware[serve]'",
            err=True,
        )
        sys.exit(1)

    from homewise.config import load_settings

    try:
        load_settings()
    except ValueError as exc:
        raise click.UsageError(str(exc))

    click.echo(f"Serving hardware detection on http://{host}:{port}")
    run_server(host=host, port=port)
