"""
Environment operations — build, start, stop, uninstall.

Each function drives one supervised operation and applies its failure
policy.  ``start_environment`` also owns the timeout fallback: when
``make start`` runs out of time the containers are up, and waiting for
file synchronization is handed to the sync session controller.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from stackup.core.console import Console
from stackup.core.errors import SyncFailure
from stackup.core.models.process import ProcessResult
from stackup.core.models.sync import SyncStatus
from stackup.core.services.supervisor import OPERATIONS, ProcessSupervisor, raise_for_result
from stackup.core.services.sync_session import SyncSessionController

logger = logging.getLogger(__name__)


def build_environment(supervisor: ProcessSupervisor) -> ProcessResult:
    return raise_for_result(OPERATIONS["build"], supervisor.build())


def stop_environment(supervisor: ProcessSupervisor) -> ProcessResult:
    return raise_for_result(OPERATIONS["stop"], supervisor.stop())


def uninstall_environment(supervisor: ProcessSupervisor) -> ProcessResult:
    """Remove containers, volumes and networks of the project."""
    return raise_for_result(OPERATIONS["purge"], supervisor.purge())


def wait_for_sync(
    sync: SyncSessionController,
    console: Console,
    *,
    cancel: threading.Event | None = None,
    on_progress: Callable[[SyncStatus], None] | None = None,
) -> None:
    """Ensure the sync session runs, then block until it is fully synced.

    Raises:
        PreconditionError: The sync container is not up.
        SyncFailure: The session errored, vanished, or monitoring was cancelled.
    """
    sync.ensure_session_running()
    console.text("Containers are up, waiting for file synchronization...")
    if not sync.monitor_until_synced(cancel=cancel, on_progress=on_progress):
        raise SyncFailure("Something happened during the sync, the files are not fully synchronized.")
    console.text("Files are synchronized.")


def start_environment(
    supervisor: ProcessSupervisor,
    sync: SyncSessionController,
    console: Console,
    *,
    install: bool = False,
    cancel: threading.Event | None = None,
    on_progress: Callable[[SyncStatus], None] | None = None,
) -> ProcessResult:
    """Start the containers; fall back to sync monitoring on timeout.

    Returns:
        The ``make start`` result (which may be the expected timeout).
    """
    key = "start-install" if install else "start"
    result = raise_for_result(OPERATIONS[key], supervisor.start(install=install))
    if result.timed_out:
        logger.info("make start timed out, the containers are up but files are still syncing")
        wait_for_sync(sync, console, cancel=cancel, on_progress=on_progress)
    return result
