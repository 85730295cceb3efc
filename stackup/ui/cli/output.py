"""
Terminal side of the core protocols — questions, progress bars, errors.

``ClickConsole`` implements ``Console``, ``ClickProgressRenderer``
implements ``ProgressRenderer``; the core never imports click.
"""

from __future__ import annotations

import functools
import sys
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

import click

from stackup.core.errors import EXIT_ERROR, StackupError
from stackup.core.models.process import ProgressState, ProgressTarget
from stackup.core.models.sync import SyncStatus

F = TypeVar("F", bound=Callable[..., Any])


class ClickConsole:
    """Interactive console backed by click prompts."""

    def section(self, title: str) -> None:
        click.echo()
        click.secho(f"▶ {title}", fg="cyan", bold=True)

    def text(self, message: str) -> None:
        click.echo(f"   {message}")

    def warning(self, message: str) -> None:
        click.secho(f"⚠️  {message}", fg="yellow")

    def confirm(self, question: str, default: bool = True) -> bool:
        return click.confirm(question, default=default)

    def ask(self, question: str, default: str = "") -> str:
        return click.prompt(question, default=default, show_default=bool(default))

    def choice(
        self,
        question: str,
        choices: Sequence[str],
        default: str | None = None,
    ) -> str:
        return click.prompt(question, type=click.Choice(list(choices)), default=default)


class ClickProgressRenderer:
    """Progress bar for one supervised operation."""

    def __init__(self, target: ProgressTarget):
        self._bar = click.progressbar(length=target.total, label=target.label.capitalize())
        self._shown = 0
        self._started = False

    def render(self, state: ProgressState) -> None:
        if not self._started:
            self._started = True
            self._bar.render_progress()
        delta = min(state.completed, state.total) - self._shown
        if delta > 0:
            self._bar.update(delta)
            self._shown += delta

    def close(self) -> None:
        if self._started:
            self._bar.render_finish()


class SyncProgressPrinter:
    """Print each distinct sync status once."""

    def __init__(self) -> None:
        self._last = ""

    def __call__(self, status: SyncStatus) -> None:
        line = status.status_text or status.state.value
        if line != self._last:
            self._last = line
            click.echo(f"   🔄 {line}")


def reports_errors(func: F) -> F:
    """Turn a ``StackupError`` into a red message, its hint and exit code 1."""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except StackupError as e:
            click.secho(f"❌ {e.message or type(e).__name__}", fg="red", err=True)
            if e.hint:
                click.secho(f"   {e.hint}", fg="yellow", err=True)
            sys.exit(EXIT_ERROR)

    return wrapper  # type: ignore[return-value]
