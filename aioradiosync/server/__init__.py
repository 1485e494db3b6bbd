"""
Radio server: the authoritative timeline and its broadcast to listeners.

RadioEngine is the single owner of playback state, responsible for:
- Building the track catalog of the active mode
- Shuffling and advancing the playlist
- Deriving the current seek position from the track start time

RadioServer pushes the engine's snapshot to every connected listener.
"""

__all__ = [
    "PeerConnectedEvent",
    "PeerDisconnectedEvent",
    "Playlist",
    "PlaylistScheduler",
    "RadioEngine",
    "RadioEvent",
    "RadioServer",
    "Snapshot",
    "TimelineAuthority",
    "Track",
    "TrackCatalog",
]

from .catalog import Track, TrackCatalog
from .engine import RadioEngine
from .scheduler import Playlist, PlaylistScheduler
from .server import PeerConnectedEvent, PeerDisconnectedEvent, RadioEvent, RadioServer
from .timeline import Snapshot, TimelineAuthority
