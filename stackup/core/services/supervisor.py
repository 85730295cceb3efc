"""
Process supervisor — the build / start / stop / purge operations.

Each operation is one record in ``OPERATIONS``: the command to run, how
many progress units to expect and how long to wait (both computed from
the container and volume counts), which output lines count as progress,
and whether running out of time is an expected outcome.

Only ``start`` expects timeouts: once the containers are up, ``make
start`` keeps going while files synchronize, and that part is handed to
the sync session controller instead.
"""

from __future__ import annotations

import functools
import logging
from collections.abc import Callable
from dataclasses import dataclass

from stackup.core.context import EnvironmentContext, OperationFacts
from stackup.core.errors import OperationTimeout, ProcessFailure
from stackup.core.models.process import (
    LineMatcher,
    ProcessResult,
    ProgressState,
    ProgressTarget,
)
from stackup.core.services.command_runner import CommandRunner
from stackup.core.services.progress import ProgressEstimator, ProgressRenderer

logger = logging.getLogger(__name__)


# ── Line matchers ───────────────────────────────────────────────


def _has(line: str, *words: str) -> bool:
    """True if *line* contains any of *words*, case-insensitively."""
    lowered = line.lower()
    return any(w in lowered for w in words)


def build_progress(line: str) -> bool:
    return _has(line, "skipping", "tagged")


def start_progress(line: str) -> bool:
    return (
        _has(line, "creating") and _has(line, "network", "volume", "done")
    ) or (_has(line, "starting") and _has(line, "done"))


def stop_progress(line: str) -> bool:
    return _has(line, "stopping") and _has(line, "done")


def purge_progress(line: str) -> bool:
    return (
        _has(line, "done") and _has(line, "stopping", "removing")
    ) or (_has(line, "removing") and _has(line, "network", "volume"))


# ── Operation table ─────────────────────────────────────────────


@dataclass(frozen=True)
class OperationSpec:
    """How to run and judge one supervised operation."""

    name: str
    argv: tuple[str, ...]
    steps: Callable[[OperationFacts], int]
    timeout: Callable[[OperationFacts], int]
    matcher: LineMatcher
    timeout_expected: bool = False
    failure_hint: str = ""
    timeout_hint: str = ""

    def target(self, facts: OperationFacts) -> ProgressTarget:
        return ProgressTarget(
            total=max(1, self.steps(facts)),
            matcher=self.matcher,
            label=self.name,
        )


OPERATIONS: dict[str, OperationSpec] = {
    "build": OperationSpec(
        name="build",
        argv=("make", "build"),
        steps=lambda f: f.containers,
        timeout=lambda f: 600,
        matcher=build_progress,
        failure_hint=(
            "Ensure you're not using a deleted branch of the docker environment package. "
            "This issue may come from a missing package in the PHP Dockerfile after a version upgrade."
        ),
        timeout_hint=(
            "Build timeout, use the option --no-timeout "
            "or run `make build` directly to build the environment."
        ),
    ),
    "start": OperationSpec(
        name="start",
        argv=("make", "start"),
        steps=lambda f: f.containers + 1,
        timeout=lambda f: 60,
        matcher=start_progress,
        timeout_expected=True,
    ),
    "start-install": OperationSpec(
        name="start",
        argv=("make", "start"),
        steps=lambda f: f.containers + f.volumes + 2,
        timeout=lambda f: 360 if f.verbose else 60,
        matcher=start_progress,
        timeout_expected=True,
    ),
    "stop": OperationSpec(
        name="stop",
        argv=("make", "stop"),
        steps=lambda f: f.containers + 1,
        timeout=lambda f: 60,
        matcher=stop_progress,
        timeout_hint="Containers are taking too long to stop, check them with `docker compose ps`.",
    ),
    "purge": OperationSpec(
        name="purge",
        argv=("make", "purge"),
        steps=lambda f: f.containers * 2 + f.volumes + 2,
        timeout=lambda f: 300,
        matcher=purge_progress,
        failure_hint="Environment couldn't be uninstalled.",
    ),
}


def raise_for_result(spec: OperationSpec, result: ProcessResult) -> ProcessResult:
    """Apply the operation's failure policy to *result*.

    Returns:
        The result unchanged when it is a success, or an expected timeout.

    Raises:
        OperationTimeout: Timed out and the operation does not expect it.
        ProcessFailure: Exited with a non-zero code.
    """
    if result.timed_out:
        if spec.timeout_expected:
            return result
        raise OperationTimeout(
            f"`{result.command}` did not finish in time.\n{result.error_output}".rstrip(),
            hint=spec.timeout_hint,
        )
    if not result.succeeded:
        raise ProcessFailure(
            result.error_output or f"`{result.command}` exited with code {result.exit_code}",
            hint=spec.failure_hint,
            exit_code=result.exit_code if isinstance(result.exit_code, int) else None,
        )
    return result


# ── Supervisor ──────────────────────────────────────────────────


class ProcessSupervisor:
    """Run the environment operations with progress estimation.

    Every method returns the raw ``ProcessResult``; callers decide what
    a failure means with ``raise_for_result``.

    Args:
        context: The project environment.
        runner: Command runner (swapped for a fake in tests).
        renderer_factory: Builds a fresh display for each operation.
        no_timeout: Wait for every operation however long it takes.
    """

    def __init__(
        self,
        context: EnvironmentContext,
        runner: CommandRunner | None = None,
        renderer_factory: Callable[[ProgressTarget], ProgressRenderer] | None = None,
        *,
        no_timeout: bool = False,
    ):
        self.context = context
        self.runner = runner or CommandRunner()
        self.renderer_factory = renderer_factory
        self.no_timeout = no_timeout
        self.last_progress: ProgressState | None = None

    def run(self, key: str) -> ProcessResult:
        """Run the operation registered as *key* in ``OPERATIONS``."""
        spec = OPERATIONS[key]
        facts = self.context.facts()
        target = spec.target(facts)
        timeout = None if self.no_timeout else spec.timeout(facts)

        renderer = self.renderer_factory(target) if self.renderer_factory else None
        estimator = ProgressEstimator(renderer)
        run = functools.partial(
            self.runner.run,
            list(spec.argv),
            timeout,
            env=self.context.docker_variables(),
            cwd=self.context.root,
        )

        logger.info("Running %s (expect %d steps, timeout %ss)", key, target.total, timeout)
        result, progress = estimator.wrap(run, target)
        self.last_progress = progress
        return result

    def build(self) -> ProcessResult:
        return self.run("build")

    def start(self, install: bool = False) -> ProcessResult:
        return self.run("start-install" if install else "start")

    def stop(self) -> ProcessResult:
        return self.run("stop")

    def purge(self) -> ProcessResult:
        return self.run("purge")
