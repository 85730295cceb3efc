"""
stackup — CLI entrypoint.

Usage:
    stackup --help
    stackup install
    stackup build --no-timeout
    stackup env set MYSQL_DATABASE shop
"""

from __future__ import annotations

import os
from pathlib import Path

import click

from stackup import __version__
from stackup.core.observability.logging_config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="stackup")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output.")
@click.option("--quiet", "-q", is_flag=True, help="Only print errors.")
@click.option("--debug", is_flag=True, help="Enable debug logging, including tool output.")
@click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(exists=False),
    default=None,
    help="Path to stackup.yml (default: auto-detect).",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    quiet: bool,
    debug: bool,
    config_path: str | None,
) -> None:
    """stackup — install and drive your local docker environment."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose or debug
    ctx.obj["config_path"] = Path(config_path) if config_path else None

    if debug:
        level = "DEBUG"
    elif verbose:
        level = "INFO"
    elif quiet:
        level = "ERROR"
    else:
        level = os.environ.get("STACKUP_LOG_LEVEL", "WARNING")

    setup_logging(
        level=level,
        log_file=os.environ.get("STACKUP_LOG_FILE"),
        log_file_level=os.environ.get("STACKUP_LOG_FILE_LEVEL"),
        quiet_runner=not debug,
    )


# ── Register commands from stackup/ui/cli/ ──────────────────────

from stackup.ui.cli.env import env  # noqa: E402
from stackup.ui.cli.environment import (  # noqa: E402
    build,
    import_,
    install,
    start,
    stop,
    sync,
    uninstall,
)

cli.add_command(install)
cli.add_command(build)
cli.add_command(start)
cli.add_command(stop)
cli.add_command(uninstall)
cli.add_command(sync)
cli.add_command(import_)
cli.add_command(env)


if __name__ == "__main__":
    cli()
