"""
Console protocol — the interactive collaborator of a provisioning run.

The core asks questions and reports phases through this interface and
never imports click.  The CLI provides ``ClickConsole``; tests provide a
scripted double.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol


class Console(Protocol):
    def section(self, title: str) -> None: ...

    def text(self, message: str) -> None: ...

    def warning(self, message: str) -> None: ...

    def confirm(self, question: str, default: bool = True) -> bool: ...

    def ask(self, question: str, default: str = "") -> str: ...

    def choice(
        self,
        question: str,
        choices: Sequence[str],
        default: str | None = None,
    ) -> str: ...
