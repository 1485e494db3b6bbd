"""States, events and per-listener bookkeeping of the reconciliation state machine."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class SyncState(Enum):
    """Lifecycle of a listener's synchronization."""

    IDLE = "idle"
    """Connected but not listening yet."""
    JOINED = "joined"
    """The listener joined, no snapshot for a loaded track was processed yet."""
    INITIAL_SYNC_PENDING = "initial_sync_pending"
    """Waiting for the first alignment with the current track."""
    SYNCED = "synced"
    """Steady state, only large drift is corrected."""
    PAUSED = "paused"
    """Paused by the listener, snapshots do not touch the media element."""
    RESUMING = "resuming"
    """Shortly after a resume, a tighter drift threshold applies."""


class ClientEvent(Enum):
    """Inputs driving the state machine."""

    JOIN = "join"
    LEAVE = "leave"
    TRACK_CHANGED = "track_changed"
    SNAPSHOT = "snapshot"
    INITIAL_SYNC_DONE = "initial_sync_done"
    PAUSE = "pause"
    RESUME = "resume"
    RESUME_SETTLED = "resume_settled"


TRANSITIONS: dict[tuple[SyncState, ClientEvent], SyncState] = {
    (SyncState.IDLE, ClientEvent.JOIN): SyncState.JOINED,
    # Joined
    (SyncState.JOINED, ClientEvent.SNAPSHOT): SyncState.INITIAL_SYNC_PENDING,
    (SyncState.JOINED, ClientEvent.TRACK_CHANGED): SyncState.INITIAL_SYNC_PENDING,
    (SyncState.JOINED, ClientEvent.INITIAL_SYNC_DONE): SyncState.SYNCED,
    (SyncState.JOINED, ClientEvent.PAUSE): SyncState.PAUSED,
    # Initial sync
    (SyncState.INITIAL_SYNC_PENDING, ClientEvent.INITIAL_SYNC_DONE): SyncState.SYNCED,
    (SyncState.INITIAL_SYNC_PENDING, ClientEvent.PAUSE): SyncState.PAUSED,
    # Synced
    (SyncState.SYNCED, ClientEvent.TRACK_CHANGED): SyncState.INITIAL_SYNC_PENDING,
    (SyncState.SYNCED, ClientEvent.PAUSE): SyncState.PAUSED,
    # Paused
    (SyncState.PAUSED, ClientEvent.RESUME): SyncState.RESUMING,
    # Resuming
    (SyncState.RESUMING, ClientEvent.RESUME_SETTLED): SyncState.SYNCED,
    (SyncState.RESUMING, ClientEvent.TRACK_CHANGED): SyncState.INITIAL_SYNC_PENDING,
    (SyncState.RESUMING, ClientEvent.PAUSE): SyncState.PAUSED,
}
for _state in SyncState:
    if _state is not SyncState.IDLE:
        TRANSITIONS[_state, ClientEvent.LEAVE] = SyncState.IDLE


def next_state(state: SyncState, event: ClientEvent) -> SyncState:
    """Return the state reached from ``state`` on ``event``; unknown pairs keep the state."""
    return TRANSITIONS.get((state, event), state)


@dataclass
class ClientSyncState:
    """
    Everything one listener remembers between events.

    Timestamps are monotonic client clock readings in seconds; None means the
    corresponding window is not open.
    """

    has_joined: bool = False
    joined_at: float | None = None
    join_seek: float | None = None
    """Server seek captured when joining, the initial sync target for that track."""
    local_seek: float = 0.0
    """Displayed playback position."""
    last_server_seek: float = 0.0
    server_playing: bool = False
    """Last play state adopted from the server."""
    is_paused_by_user: bool = False
    paused_server_seek: float | None = None
    last_sync_at: float | None = None
    """Time of the last hard-seek correction."""
    last_resume_at: float | None = None
    has_completed_initial_sync: bool = False
    has_started_playback: bool = False

    def in_resume_grace(self, now: float, window: float) -> bool:
        """Whether a resume happened less than ``window`` seconds ago."""
        return self.last_resume_at is not None and now - self.last_resume_at < window

    def resume_grace_expired(self, now: float, window: float) -> bool:
        """Whether a resume grace window is open in the record but over at ``now``."""
        return self.last_resume_at is not None and now - self.last_resume_at >= window

    def in_debounce(self, now: float, window: float) -> bool:
        """Whether ``now`` falls within ``window`` seconds of joining or of the last correction."""
        if self.joined_at is not None and now - self.joined_at < window:
            return True
        return self.last_sync_at is not None and now - self.last_sync_at < window

    def reset_for_track(self) -> None:
        """Forget everything tied to the previously loaded track."""
        self.has_completed_initial_sync = False
        self.has_started_playback = False
        self.join_seek = None
