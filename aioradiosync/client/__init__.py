"""Public interface for the radio client package."""

from .client import RadioClient, SyncCallback
from .media import MediaElement, MediaEvent, MediaEventCallback, ReadyState
from .reconciler import Reconciler
from .state import ClientEvent, ClientSyncState, SyncState

__all__ = [
    "ClientEvent",
    "ClientSyncState",
    "MediaElement",
    "MediaEvent",
    "MediaEventCallback",
    "RadioClient",
    "ReadyState",
    "Reconciler",
    "SyncCallback",
    "SyncState",
]
