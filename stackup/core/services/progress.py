"""
Progress estimation for commands that never report a completion fraction.

The tools we drive print free-form text.  Instead of parsing it, each
operation supplies a line matcher and an expected number of matches;
every matching line advances a counter by one, clamped at the total.
The counter is a heuristic: it may stop short of the total or reach it
early, and it is discarded when the operation ends.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from stackup.core.models.process import ProcessResult, ProgressState, ProgressTarget
from stackup.core.services.command_runner import LineCallback

logger = logging.getLogger(__name__)


class ProgressRenderer(Protocol):
    """Display collaborator.  Must not raise, but is guarded anyway."""

    def render(self, state: ProgressState) -> None: ...

    def close(self) -> None: ...


class NullRenderer:
    """Renderer that displays nothing (tests, ``--quiet``)."""

    def render(self, state: ProgressState) -> None:
        pass

    def close(self) -> None:
        pass


RunWithCallback = Callable[[LineCallback], ProcessResult]
"""A runner with everything bound except the ``on_line`` callback."""


class ProgressEstimator:
    """Count matching output lines while a command runs."""

    def __init__(self, renderer: ProgressRenderer | None = None):
        self.renderer = renderer or NullRenderer()

    def wrap(
        self,
        run: RunWithCallback,
        target: ProgressTarget,
    ) -> tuple[ProcessResult, ProgressState]:
        """Run the command, advancing progress on every matching line.

        Args:
            run: Callable that starts the command and feeds each output
                line to the callback it receives.
            target: Expected total and the line matcher.

        Returns:
            The process result and the final progress state.
        """
        state = ProgressState(total=target.total)
        self._render(state)

        def on_line(_stream: str, line: str) -> bool:
            if not target.matcher(line):
                return False
            if state.advance():
                self._render(state)
            return state.completed >= state.total

        try:
            result = run(on_line)
        finally:
            try:
                self.renderer.close()
            except Exception:
                logger.debug("Progress renderer failed to close", exc_info=True)

        logger.debug(
            "%s progress: %d/%d (%.0f%%)", target.label or "operation",
            state.completed, state.total, state.fraction * 100,
        )
        return result, state

    def _render(self, state: ProgressState) -> None:
        try:
            self.renderer.render(state)
        except Exception:
            logger.debug("Progress renderer failed", exc_info=True)
