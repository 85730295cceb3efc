"""
CLI commands for the docker env file — list, get, set, configure.

Edits are line-preserving: comments, ordering and line endings of the
file are kept, and only the targeted values change.
"""

from __future__ import annotations

import sys

import click

from stackup.core.errors import EXIT_ERROR
from stackup.ui.cli.environment import get_context
from stackup.ui.cli.output import ClickConsole, reports_errors


@click.group()
def env() -> None:
    """Docker env file — read and edit KEY=VALUE settings."""


@env.command("list")
@click.pass_context
@reports_errors
def env_list(ctx: click.Context) -> None:
    """Print every KEY=VALUE defined in the env file."""
    context = get_context(ctx)
    config = context.env
    if not config.exists:
        click.secho(f"⚠️  {context.settings.env_file} does not exist yet", fg="yellow")
        return
    for key in config.keys():
        click.echo(f"{key}={config.get_value(key)}")


@env.command("get")
@click.argument("key")
@click.pass_context
@reports_errors
def env_get(ctx: click.Context, key: str) -> None:
    """Print the value of KEY."""
    config = get_context(ctx).env
    if not config.has(key):
        click.secho(f"❌ {key} is not defined", fg="red", err=True)
        sys.exit(EXIT_ERROR)
    click.echo(config.get_value(key))


@env.command("set")
@click.argument("key")
@click.argument("value")
@click.pass_context
@reports_errors
def env_set(ctx: click.Context, key: str, value: str) -> None:
    """Set KEY to VALUE (the key must already exist)."""
    context = get_context(ctx)
    config = context.env
    if not config.has(key):
        click.secho(f"❌ {key} is not defined in {context.settings.env_file}", fg="red", err=True)
        sys.exit(EXIT_ERROR)

    if config.set_value(key, value):
        config.save()
        click.secho(f"✅ {key}={value}", fg="green")
    else:
        click.echo(f"   {key} already set to {value}")


@env.command("configure")
@click.argument("section")
@click.pass_context
@reports_errors
def env_configure(ctx: click.Context, section: str) -> None:
    """Ask for a value for every key starting with SECTION."""
    config = get_context(ctx).env
    outcome = config.configure_section(section, ClickConsole())
    if outcome.nothing_to_configure:
        click.secho(f"⚠️  Section {section} has nothing to configure", fg="yellow")
        return
    if outcome.changed:
        config.save()
        click.secho(f"✅ Updated: {', '.join(outcome.changed)}", fg="green")
    else:
        click.echo("   Nothing changed")
