"""
Domain models for provisioning runs.

    from stackup.core.models import ProcessResult, ProgressTarget, SyncStatus
"""

from stackup.core.models.process import (
    TIMEOUT,
    LineMatcher,
    ProcessResult,
    ProgressState,
    ProgressTarget,
)
from stackup.core.models.sync import SyncState, SyncStatus

__all__ = [
    # process.py
    "LineMatcher",
    "ProcessResult",
    "ProgressState",
    "ProgressTarget",
    "TIMEOUT",
    # sync.py
    "SyncState",
    "SyncStatus",
]
