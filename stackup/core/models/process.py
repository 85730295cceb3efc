"""
Process models — the result of one supervised command and its progress.

``ProcessResult`` is produced by the command runner and never mutated.
``ProgressTarget`` is computed once per operation before the process
starts; ``ProgressState`` is the running counter the estimator owns.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

TIMEOUT: Literal["timeout"] = "timeout"
"""Exit-code sentinel for a process that did not exit within its budget."""

LineMatcher = Callable[[str], bool]


class ProcessResult(BaseModel):
    """Outcome of a single external process run.

    ``exit_code`` is the tool's own return code, or ``TIMEOUT`` when the
    deadline elapsed first.  A negative code means the process was killed
    by a signal.
    """

    model_config = ConfigDict(frozen=True)

    argv: list[str] = Field(default_factory=list)
    exit_code: int | Literal["timeout"]
    stdout: str = ""
    stderr: str = ""
    duration_ms: int = 0

    @property
    def succeeded(self) -> bool:
        return self.exit_code == 0

    @property
    def timed_out(self) -> bool:
        return self.exit_code == TIMEOUT

    @property
    def error_output(self) -> str:
        """Best diagnostic text: stderr, falling back to stdout."""
        return self.stderr.strip() or self.stdout.strip()

    @property
    def command(self) -> str:
        return " ".join(self.argv)


@dataclass(frozen=True)
class ProgressTarget:
    """How many progress units an operation should produce, and what counts."""

    total: int
    matcher: LineMatcher
    label: str = ""

    def __post_init__(self) -> None:
        if self.total < 1:
            raise ValueError(f"Progress total must be positive, got {self.total}")


@dataclass
class ProgressState:
    """Monotonic progress counter, clamped to ``total``."""

    total: int
    completed: int = 0

    def advance(self) -> bool:
        """Count one unit of work. Returns False once the total is reached."""
        if self.completed >= self.total:
            return False
        self.completed += 1
        return True

    @property
    def fraction(self) -> float:
        return self.completed / self.total if self.total else 0.0
