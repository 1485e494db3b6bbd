"""aioradiosync: a shared-timeline radio server and its synchronized listeners."""

from __future__ import annotations

# Re-export client library for easy import
from aioradiosync.client import (
    ClientSyncState,
    MediaElement,
    MediaEvent,
    RadioClient,
    ReadyState,
    Reconciler,
    SyncState,
)
from aioradiosync.config import RadioConfig, SyncConfig

__all__ = [
    "ClientSyncState",
    "MediaElement",
    "MediaEvent",
    "RadioClient",
    "RadioConfig",
    "ReadyState",
    "Reconciler",
    "SyncConfig",
    "SyncState",
]
