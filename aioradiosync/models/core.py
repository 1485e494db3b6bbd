"""Messages exchanged between the radio server and its listeners.

The server periodically pushes a ``sync`` message describing what is playing and
how far into the track the shared timeline is. Listeners only ever send two
signals back: the duration they measured for the current track and the fact
that their local copy of the track ended.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal

from mashumaro import field_options
from mashumaro.config import BaseConfig
from mashumaro.mixins.orjson import DataClassORJSONMixin

from .types import ClientMessage, Mode, ServerMessage


@dataclass
class PlaylistEntry(DataClassORJSONMixin):
    """An upcoming track as shown to listeners."""

    id: str
    """Relative path of the audio file, also used to build its URL."""
    title: str
    artist: str


# Server -> Client sync
@dataclass
class SyncPayload(DataClassORJSONMixin):
    """Snapshot of the shared timeline."""

    track: str | None
    """Id of the current track, None while preparing or before playback starts."""
    title: str | None
    artist: str | None
    mode: Mode
    """Mode the station is in (or transitioning to)."""
    seek: float
    """Seconds elapsed in the current track according to the server."""
    is_playing: bool = field(metadata=field_options(alias="isPlaying"))
    is_preparing: bool = field(default=False, metadata=field_options(alias="isPreparing"))
    """True while the catalog is rebuilt for a new mode; no track is reported then."""
    playlist: list[PlaylistEntry] = field(default_factory=list)
    """Upcoming tracks after the current one."""
    current_index: int = field(default=0, metadata=field_options(alias="currentIndex"))
    total_tracks: int = field(default=0, metadata=field_options(alias="totalTracks"))
    station: str = ""
    """Station name of the mode."""

    class Config(BaseConfig):
        """Config for parsing json messages."""

        serialize_by_alias = True


@dataclass
class SyncMessage(ServerMessage):
    """Message broadcast by the server on every tick and on connect."""

    payload: SyncPayload
    type: Literal["sync"] = "sync"


# Client -> Server feedback
@dataclass
class TrackEndMessage(ClientMessage):
    """Message sent by a listener when its local copy of the track ended."""

    type: Literal["trackEnd"] = "trackEnd"


@dataclass
class TrackDurationMessage(ClientMessage):
    """Message sent by a listener once it knows the duration of the current track."""

    payload: float
    """Duration in seconds."""
    type: Literal["trackDuration"] = "trackDuration"
