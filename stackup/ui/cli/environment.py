"""
CLI commands driving the environment: install, build, start, stop,
uninstall, sync, import.

Thin wrappers over ``stackup.core.use_cases``.
"""

from __future__ import annotations

import sys
from pathlib import Path

import click

from stackup.core.context import EnvironmentContext
from stackup.core.errors import EXIT_ERROR
from stackup.core.services.supervisor import ProcessSupervisor
from stackup.core.services.sync_session import SyncSessionController
from stackup.ui.cli.output import (
    ClickConsole,
    ClickProgressRenderer,
    SyncProgressPrinter,
    reports_errors,
)


def get_context(ctx: click.Context) -> EnvironmentContext:
    """Build the environment context once per invocation."""
    obj = ctx.ensure_object(dict)
    if "context" not in obj:
        obj["context"] = EnvironmentContext.discover(
            obj.get("config_path"),
            verbose=obj.get("verbose", False),
        )
    return obj["context"]


def _supervisor(context: EnvironmentContext, *, no_timeout: bool = False) -> ProcessSupervisor:
    return ProcessSupervisor(
        context,
        renderer_factory=ClickProgressRenderer,
        no_timeout=no_timeout,
    )


@click.command()
@click.pass_context
@reports_errors
def install(ctx: click.Context) -> None:
    """Install the project environment from scratch."""
    from stackup.core.use_cases.install import Installer

    context = get_context(ctx)
    installer = Installer(
        context,
        ClickConsole(),
        supervisor=_supervisor(context),
        on_sync_progress=SyncProgressPrinter(),
    )
    result = installer.run()

    click.echo()
    click.secho("✅ Environment installed", fg="green", bold=True)
    click.echo(f"   🌐 http://www.{result.server_name}")
    for warning in result.warnings:
        click.secho(f"⚠️  {warning}", fg="yellow")


@click.command()
@click.option("--no-timeout", is_flag=True, help="Wait for the build however long it takes.")
@click.pass_context
@reports_errors
def build(ctx: click.Context, no_timeout: bool) -> None:
    """Build the containers."""
    from stackup.core.use_cases.environment import build_environment

    build_environment(_supervisor(get_context(ctx), no_timeout=no_timeout))
    click.secho("✅ Containers built", fg="green")


@click.command()
@click.pass_context
@reports_errors
def start(ctx: click.Context) -> None:
    """Start the containers and wait for file synchronization."""
    from stackup.core.use_cases.environment import start_environment

    context = get_context(ctx)
    start_environment(
        _supervisor(context),
        SyncSessionController(context),
        ClickConsole(),
        on_progress=SyncProgressPrinter(),
    )
    click.secho("✅ Environment started", fg="green")


@click.command()
@click.pass_context
@reports_errors
def stop(ctx: click.Context) -> None:
    """Stop the containers."""
    from stackup.core.use_cases.environment import stop_environment

    stop_environment(_supervisor(get_context(ctx)))
    click.secho("✅ Environment stopped", fg="green")


@click.command()
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation.")
@click.pass_context
@reports_errors
def uninstall(ctx: click.Context, yes: bool) -> None:
    """Remove the containers, volumes and networks of the project."""
    from stackup.core.use_cases.environment import uninstall_environment

    if not yes:
        click.confirm("Containers and volumes will be removed, continue?", abort=True)
    uninstall_environment(_supervisor(get_context(ctx)))
    click.secho("✅ Environment uninstalled", fg="green")


@click.command()
@click.pass_context
@reports_errors
def sync(ctx: click.Context) -> None:
    """Create or resume the sync session and wait until files are synced."""
    from stackup.core.use_cases.environment import wait_for_sync

    context = get_context(ctx)
    wait_for_sync(
        SyncSessionController(context),
        ClickConsole(),
        on_progress=SyncProgressPrinter(),
    )
    click.secho("✅ Files synchronized", fg="green")


@click.command("import")
@click.argument(
    "dump",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.pass_context
@reports_errors
def import_(ctx: click.Context, dump: Path | None) -> None:
    """Import a database dump (.sql, .sql.gz, .sql.gzip or .sql.zip).

    Without DUMP, the project root and its direct subdirectories are
    searched and you pick one of the dumps found.
    """
    from stackup.core.use_cases.database import choose_dump, import_database

    context = get_context(ctx)
    if dump is None:
        dump = choose_dump(context, ClickConsole())
        if dump is None:
            click.secho("❌ No database dump imported", fg="red", err=True)
            sys.exit(EXIT_ERROR)

    database = import_database(context, dump.resolve())
    click.secho(f"✅ {dump.name} imported into {database}", fg="green")
