"""
Sync session models — what the synchronization daemon reports.

The daemon owns the session lifecycle; these types only describe what
was observed at the last status query.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class SyncState(str, Enum):
    """Observed state of the file-synchronization session."""

    ABSENT = "absent"
    CREATED = "created"
    PAUSED = "paused"
    SYNCING = "syncing"
    ERROR = "error"


class SyncStatus(BaseModel):
    """One observation of the sync session."""

    state: SyncState
    status_text: str = ""
    percent: int | None = None
    last_error: str = ""

    @property
    def exists(self) -> bool:
        return self.state != SyncState.ABSENT

    @property
    def synced(self) -> bool:
        """Whether the session is fully converged and watching for changes."""
        return (
            self.state == SyncState.SYNCING
            and "watching for changes" in self.status_text.lower()
        )
