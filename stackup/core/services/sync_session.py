"""
Sync session controller — the mutagen session between host and container.

The daemon owns the session; this controller only observes it and
re-drives it (create, resume).  ``monitor_until_synced`` is the fallback
used when ``make start`` runs out of time: the containers are up and the
file tree is still converging, which has no fixed upper bound.

Polling is read-only, so cancelling the monitor (event or Ctrl-C) at
any point leaves the session exactly as the daemon has it.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable

from stackup.core.context import EnvironmentContext
from stackup.core.errors import PreconditionError, SyncFailure
from stackup.core.models.sync import SyncState, SyncStatus
from stackup.core.services.command_runner import CommandRunner
from stackup.core.services.compose import ComposeClient

logger = logging.getLogger(__name__)

_STATUS_LINE = re.compile(r"^\s*Status:\s*(?P<status>.+?)\s*$", re.MULTILINE)
_ERROR_LINE = re.compile(r"^\s*Last error:\s*(?P<error>.+?)\s*$", re.MULTILINE)
_PERCENT = re.compile(r"(\d{1,3})%")
_MISSING = ("unable to locate", "no matches", "no sessions found")


def parse_status(output: str, exit_code: int | str = 0) -> SyncStatus:
    """Turn ``mutagen sync list`` output into a ``SyncStatus``."""
    lowered = output.lower()
    if any(marker in lowered for marker in _MISSING):
        return SyncStatus(state=SyncState.ABSENT)

    error_match = _ERROR_LINE.search(output)
    last_error = error_match.group("error") if error_match else ""

    status_match = _STATUS_LINE.search(output)
    if exit_code == 0 and not status_match:
        return SyncStatus(state=SyncState.ABSENT)
    if exit_code != 0 or not status_match:
        return SyncStatus(
            state=SyncState.ERROR,
            status_text=output.strip(),
            last_error=last_error or output.strip(),
        )

    text = status_match.group("status")
    lowered = text.lower()
    percent_match = _PERCENT.search(text)
    percent = min(100, int(percent_match.group(1))) if percent_match else None

    if "paused" in lowered:
        state = SyncState.PAUSED
    elif "halted" in lowered or lowered.startswith("error"):
        state = SyncState.ERROR
    elif "waiting" in lowered or "connecting" in lowered:
        state = SyncState.CREATED
    else:
        state = SyncState.SYNCING

    return SyncStatus(state=state, status_text=text, percent=percent, last_error=last_error)


class SyncSessionController:
    """Create, resume and watch the project's sync session.

    Args:
        context: The project environment.
        runner: Command runner used for every mutagen call.
        compose: Container status collaborator (precondition check).
        timeout: Budget for each individual mutagen call.
    """

    def __init__(
        self,
        context: EnvironmentContext,
        runner: CommandRunner | None = None,
        compose: ComposeClient | None = None,
        *,
        timeout: int = 30,
    ):
        self.context = context
        self.runner = runner or CommandRunner()
        self._compose = compose
        self.timeout = timeout

    @property
    def compose(self) -> ComposeClient:
        if self._compose is None:
            self._compose = ComposeClient(
                self.runner,
                env=self.context.docker_variables(),
                cwd=self.context.root,
            )
        return self._compose

    @property
    def session_name(self) -> str:
        return self.context.sync_session_name

    # ── Observe ─────────────────────────────────────────────────

    def status(self) -> SyncStatus:
        result = self.runner.run(
            ["mutagen", "sync", "list", self.session_name],
            self.timeout,
        )
        if result.timed_out:
            return SyncStatus(state=SyncState.ERROR, last_error="mutagen did not answer in time")
        output = "\n".join(part for part in (result.stdout, result.stderr) if part)
        return parse_status(output, result.exit_code)

    # ── Act ─────────────────────────────────────────────────────

    def ensure_session_running(self) -> bool:
        """Make sure a sync session exists and is not paused.

        Raises:
            PreconditionError: The sync container is not up.
            SyncFailure: The session could not be created or resumed.
        """
        service = self.context.settings.sync.service
        if not self.compose.is_container_up(service):
            raise PreconditionError(f"The {service} container is not started.")

        status = self.status()
        if status.state == SyncState.PAUSED:
            logger.info("Resuming paused sync session %s", self.session_name)
            self._call(["mutagen", "sync", "resume", self.session_name], "resumed")
        elif status.exists:
            logger.debug("Sync session %s already %s", self.session_name, status.state.value)
        else:
            logger.info("Creating sync session %s", self.session_name)
            self._call(self._create_argv(service), "created")
        return True

    def _create_argv(self, service: str) -> list[str]:
        sync = self.context.settings.sync
        container = (
            self.compose.container_name(service)
            or f"{self.context.compose_project_name}-{service}-1"
        )
        return [
            "mutagen", "sync", "create",
            f"--name={self.session_name}",
            f"--label=stackup={self.session_name}",
            "--sync-mode=two-way-resolved",
            "--default-owner-beta=www-data",
            "--default-group-beta=www-data",
            "--symlink-mode=posix-raw",
            "--ignore-vcs",
            *[f"--ignore={path}" for path in sync.ignore],
            str(self.context.root),
            f"docker://{container}{sync.target_path}",
        ]

    def _call(self, argv: list[str], verb: str) -> None:
        result = self.runner.run(argv, self.timeout)
        if not result.succeeded:
            raise SyncFailure(
                f"Mutagen session could not be {verb}.\n{result.error_output}".rstrip(),
                hint="Check the mutagen daemon with `mutagen daemon start`.",
            )

    # ── Monitor ─────────────────────────────────────────────────

    def monitor_until_synced(
        self,
        cancel: threading.Event | None = None,
        on_progress: Callable[[SyncStatus], None] | None = None,
    ) -> bool:
        """Poll the session until it is fully synced.

        Args:
            cancel: Set it to stop monitoring; the call then returns False.
            on_progress: Receives every observed status.

        Returns:
            True once the session watches for changes; False on an error
            status, a vanished session, or cancellation.
        """
        cancel = cancel or threading.Event()
        sync = self.context.settings.sync
        interval = sync.poll_interval
        last_percent: int | None = None

        while not cancel.is_set():
            status = self.status()
            if on_progress is not None:
                on_progress(status)

            if status.synced:
                logger.info("Sync session %s is up to date", self.session_name)
                return True
            if status.state in (SyncState.ERROR, SyncState.ABSENT):
                logger.warning(
                    "Sync session %s stopped converging: %s",
                    self.session_name, status.last_error or status.state.value,
                )
                return False

            # back off while nothing moves, poll fast again on progress
            if status.percent != last_percent:
                interval = sync.poll_interval
                last_percent = status.percent

            if cancel.wait(interval):
                break
            interval = min(interval * 2, sync.max_poll_interval)

        logger.info("Sync monitoring cancelled")
        return False
