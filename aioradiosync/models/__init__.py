"""Models for the aioradiosync wire protocol."""

from __future__ import annotations

__all__ = [
    "ClientMessage",
    "Mode",
    "PlaylistEntry",
    "ServerMessage",
    "SyncMessage",
    "SyncPayload",
    "TrackDurationMessage",
    "TrackEndMessage",
    "core",
    "types",
]

from . import core, types
from .core import (
    PlaylistEntry,
    SyncMessage,
    SyncPayload,
    TrackDurationMessage,
    TrackEndMessage,
)
from .types import ClientMessage, Mode, ServerMessage
