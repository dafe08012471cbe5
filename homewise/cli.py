"""
Homewise command-line interface.

Usage::

    homewise gpu
    homewise gpu --json
    homewise gpu --test-mode --backend nvidia
    homewise hardware --json
    homewise serve --port 8765
"""

from __future__ import annotations

import click

from homewise import __version__
from homewise.config import configure_logging


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="homewise")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
def main(verbose: bool) -> None:
    """Homewise: detect GPU and host hardware capabilities."""
    configure_logging(verbose=verbose)


# ---------------------------------------------------------------------------
# Register command modules
# ---------------------------------------------------------------------------

from homewise.commands import hardware, serve  # noqa: E402

for _mod in [hardware, serve]:
    _mod.register(main)
