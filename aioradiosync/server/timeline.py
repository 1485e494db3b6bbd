"""The canonical "what track, at what offset, since when" of the radio."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from aioradiosync.models import Mode, PlaylistEntry, SyncPayload

from .catalog import Track, TrackCatalog

logger = logging.getLogger(__name__)


@dataclass
class PlaybackState:
    """Mutable playback state, owned by TimelineAuthority only."""

    mode: Mode
    current_track_id: str | None = None
    started_at: float = 0.0
    """Monotonic timestamp at which the current track started."""
    known_duration_s: float | None = None
    """Duration reported by the first listener, unset until then."""
    is_playing: bool = False
    is_transitioning: bool = False
    paused_at: float | None = None
    """Monotonic timestamp of an operator pause, None while running."""


@dataclass(frozen=True, slots=True)
class Snapshot:
    """Immutable read of the timeline at one instant."""

    track: Track | None
    mode: Mode
    seek: float
    is_playing: bool
    is_preparing: bool = False
    upcoming: tuple[Track, ...] = field(default_factory=tuple)
    current_index: int = 0
    total_tracks: int = 0
    station: str = ""

    def to_payload(self) -> SyncPayload:
        """Convert to the payload of a sync message."""
        return SyncPayload(
            track=self.track.id if self.track else None,
            title=self.track.title if self.track else None,
            artist=self.track.artist if self.track else None,
            mode=self.mode,
            seek=self.seek,
            is_playing=self.is_playing,
            is_preparing=self.is_preparing,
            playlist=[
                PlaylistEntry(id=track.id, title=track.title, artist=track.artist)
                for track in self.upcoming
            ],
            current_index=self.current_index,
            total_tracks=self.total_tracks,
            station=self.station,
        )


class TimelineAuthority:
    """
    Single source of truth for the current track and its position.

    The seek position is never stored, it is derived from the start timestamp
    and a clock reading supplied by the caller. All methods taking ``now`` are
    deterministic given the stored state and that reading.
    """

    def __init__(self, mode: Mode, *, end_epsilon_s: float = 0.1) -> None:
        """Create an empty timeline in ``mode``."""
        self._state = PlaybackState(mode=mode)
        self._end_epsilon_s = end_epsilon_s

    @property
    def state(self) -> PlaybackState:
        """Current state. Treat as read-only."""
        return self._state

    @property
    def current_track_id(self) -> str | None:
        """Id of the track being played."""
        return self._state.current_track_id

    @property
    def is_transitioning(self) -> bool:
        """Whether the catalog is being rebuilt for a new mode."""
        return self._state.is_transitioning

    def advance(self, track_id: str, now: float) -> None:
        """Start ``track_id`` from the beginning at ``now``."""
        state = self._state
        state.current_track_id = track_id
        state.started_at = now
        state.known_duration_s = None
        state.is_playing = True
        state.paused_at = None

    def clear(self) -> None:
        """Forget the current track."""
        state = self._state
        state.current_track_id = None
        state.known_duration_s = None
        state.is_playing = False
        state.paused_at = None

    def begin_transition(self, mode: Mode) -> None:
        """Enter a transition towards ``mode``, dropping the current track."""
        self.clear()
        self._state.is_transitioning = True
        self._state.mode = mode

    def end_transition(self, mode: Mode) -> None:
        """Leave the transition, settling on ``mode``."""
        self._state.is_transitioning = False
        self._state.mode = mode

    def report_duration(self, seconds: float) -> bool:
        """
        Record the duration of the current track.

        Only the first valid report per track is accepted, later ones are ignored.
        Returns whether the report was accepted.
        """
        state = self._state
        if state.current_track_id is None or state.is_transitioning:
            logger.debug("Ignoring duration %r without a current track", seconds)
            return False
        if state.known_duration_s is not None:
            logger.debug(
                "Ignoring duration %r, already known as %.3fs", seconds, state.known_duration_s
            )
            return False
        if not math.isfinite(seconds) or seconds <= 0:
            logger.debug("Ignoring invalid duration %r", seconds)
            return False
        state.known_duration_s = seconds
        logger.debug("Duration of %s set to %.3fs", state.current_track_id, seconds)
        return True

    def seek(self, now: float) -> float:
        """Return the position in the current track at ``now``."""
        state = self._state
        if state.current_track_id is None:
            return 0.0
        reference = state.paused_at if state.paused_at is not None else now
        elapsed = max(0.0, reference - state.started_at)
        if state.known_duration_s is not None:
            return min(elapsed, state.known_duration_s)
        return elapsed

    def should_advance(self, now: float) -> bool:
        """Return whether the current track has played to its end at ``now``."""
        state = self._state
        if not state.is_playing or state.known_duration_s is None:
            return False
        return self.seek(now) >= state.known_duration_s - self._end_epsilon_s

    def pause(self, now: float) -> bool:
        """Freeze the timeline. Returns False if there was nothing to pause."""
        state = self._state
        if not state.is_playing or state.current_track_id is None:
            return False
        state.paused_at = now
        state.is_playing = False
        return True

    def resume(self, now: float) -> bool:
        """Continue a paused timeline from where it stopped."""
        state = self._state
        if state.paused_at is None or state.current_track_id is None:
            return False
        state.started_at += now - state.paused_at
        state.paused_at = None
        state.is_playing = True
        return True

    def snapshot(self, now: float, catalog: TrackCatalog | None) -> Snapshot:
        """Return the track, mode and seek at ``now``."""
        state = self._state
        if state.is_transitioning:
            return Snapshot(
                track=None, mode=state.mode, seek=0.0, is_playing=False, is_preparing=True
            )
        track_id = state.current_track_id
        if track_id is None or catalog is None or track_id not in catalog:
            return Snapshot(track=None, mode=state.mode, seek=0.0, is_playing=False)
        return Snapshot(
            track=catalog.get(track_id),
            mode=state.mode,
            seek=self.seek(now),
            is_playing=state.is_playing,
        )
