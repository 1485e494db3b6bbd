"""Keeps a local media element in step with the server's timeline."""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable

from aioradiosync.clock import Clock, SystemClock
from aioradiosync.config import SyncConfig
from aioradiosync.errors import PlaybackRejectedError
from aioradiosync.models import SyncPayload

from .media import MediaElement
from .state import ClientEvent, ClientSyncState, SyncState, next_state

logger = logging.getLogger(__name__)


class Reconciler:
    """
    Client reconciliation state machine of one listener.

    Every inbound snapshot is checked against these rules, first match wins:

    1. A different track: load it; once the media is ready, seek to the
       server position and play.
    2. The server is preparing a new mode: show that, leave the media alone.
    3. First snapshot for the track since joining: seek if off by more than
       ``initial_drift_s``, preferring the seek captured at join time.
    4. Shortly after a resume: seek if off by more than ``resume_drift_s``.
    5. Steady state: after the debounce window, seek only when off by more
       than ``steady_drift_s`` and actually playing; otherwise trust the local
       clock. The seek is deferred to the next loop iteration and dropped if
       anything changed in between.
    6. Media without data: show the server position.

    Play/pause follows the server independently of seeking. While the
    listener paused, snapshots only update the remembered server position.
    """

    def __init__(
        self,
        media: MediaElement,
        url_for: Callable[[str], str],
        *,
        clock: Clock | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """
        Create a reconciler driving ``media``.

        Args:
            media: The local media element.
            url_for: Maps a track id to the URL the media element loads.
            clock: Source of monotonic time.
            loop: Loop used to defer steady-state corrections, defaults to the running loop.
            config: Drift thresholds and windows.
        """
        self._media = media
        self._url_for = url_for
        self._clock = clock or SystemClock()
        self._loop = loop
        self._config = config or SyncConfig()
        self._sync = ClientSyncState()
        self._state = SyncState.IDLE
        self._track: str | None = None
        self._now_playing: SyncPayload | None = None
        self._is_preparing = False
        self._generation = 0
        self._pending_correction: asyncio.Handle | None = None

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    @property
    def state(self) -> SyncState:
        """Current state of the machine."""
        return self._state

    @property
    def sync_state(self) -> ClientSyncState:
        """Bookkeeping record, for inspection."""
        return self._sync

    @property
    def track(self) -> str | None:
        """Id of the track loaded into the media element."""
        return self._track

    @property
    def now_playing(self) -> SyncPayload | None:
        """Last snapshot received, for display."""
        return self._now_playing

    @property
    def is_preparing(self) -> bool:
        """Whether the server is switching modes."""
        return self._is_preparing

    @property
    def position(self) -> float:
        """Playback position to display."""
        return self._sync.local_seek

    @property
    def correction_pending(self) -> bool:
        """Whether a deferred steady-state seek is scheduled."""
        return self._pending_correction is not None

    def join(self) -> None:
        """Start listening."""
        sync = self._sync
        if sync.has_joined:
            return
        sync.has_joined = True
        sync.joined_at = self._clock.monotonic()
        if self._track is not None:
            sync.join_seek = sync.last_server_seek
        self._fire(ClientEvent.JOIN)
        logger.info("Joined radio")
        if self._track is not None and self._media.has_data and sync.server_playing:
            self._start_playback()

    def leave(self) -> None:
        """Tear down all local state, e.g. when the connection drops."""
        self._cancel_pending()
        self._sync = ClientSyncState()
        self._track = None
        self._now_playing = None
        self._is_preparing = False
        self._fire(ClientEvent.LEAVE)
        self._ensure_paused()

    def pause(self) -> None:
        """Pause on behalf of the listener; snapshots no longer drive the media."""
        sync = self._sync
        if not sync.has_joined or sync.is_paused_by_user:
            return
        self._cancel_pending()
        sync.is_paused_by_user = True
        sync.paused_server_seek = sync.last_server_seek
        sync.last_resume_at = None
        self._media.pause()
        self._fire(ClientEvent.PAUSE)
        logger.debug("Paused by listener at %.2fs", self._media.current_time)

    def resume(self) -> None:
        """Resume after a listener pause, jumping to the server position if needed."""
        sync = self._sync
        if not sync.is_paused_by_user:
            return
        now = self._clock.monotonic()
        drift = abs(self._media.current_time - sync.last_server_seek)
        if drift > self._config.resume_drift_s and self._media.has_data:
            logger.debug("Resuming with drift %.2fs, seeking to server position", drift)
            self._hard_seek(sync.last_server_seek, now)
        if sync.server_playing:
            try:
                self._media.play()
            except PlaybackRejectedError as err:
                logger.warning("Failed to resume playback: %s", err)
                return
            sync.has_started_playback = True
        sync.is_paused_by_user = False
        sync.paused_server_seek = None
        sync.last_resume_at = now
        self._fire(ClientEvent.RESUME)

    def toggle_pause(self) -> None:
        """Pause when listening, resume when paused."""
        if self._sync.is_paused_by_user:
            self.resume()
        else:
            self.pause()

    def handle_snapshot(self, payload: SyncPayload) -> None:
        """Reconcile the media element with a snapshot from the server."""
        now = self._clock.monotonic()
        sync = self._sync
        sync.last_server_seek = payload.seek
        self._now_playing = payload

        # 1. Track changed
        if payload.track is not None and payload.track != self._track:
            self._change_track(payload)
            return

        # 2. Preparing a mode transition
        if payload.is_preparing:
            self._is_preparing = True
            sync.local_seek = payload.seek
            return
        self._is_preparing = False

        if payload.track is None or not sync.has_joined:
            sync.local_seek = payload.seek
            return
        if sync.is_paused_by_user:
            return

        self._reconcile_play_state(payload)

        # 6. Nothing loaded to seek in yet
        if not self._media.has_data:
            sync.local_seek = payload.seek
            return

        # 3. Initial sync
        if not sync.has_completed_initial_sync:
            self._fire(ClientEvent.SNAPSHOT)
            target = sync.join_seek if sync.join_seek is not None else payload.seek
            if abs(self._media.current_time - target) > self._config.initial_drift_s:
                logger.debug("Initial sync, seeking to %.2fs", target)
                self._hard_seek(target, now)
            else:
                sync.local_seek = self._media.current_time
            sync.has_completed_initial_sync = True
            self._fire(ClientEvent.INITIAL_SYNC_DONE)
            return

        drift = abs(self._media.current_time - payload.seek)

        # 4. Just resumed
        if sync.in_resume_grace(now, self._config.resume_grace_s):
            if drift > self._config.resume_drift_s and not self._media.paused:
                logger.debug("Drift %.2fs right after resume, seeking", drift)
                self._hard_seek(payload.seek, now)
                sync.last_resume_at = None
                self._fire(ClientEvent.RESUME_SETTLED)
                return
        elif sync.resume_grace_expired(now, self._config.resume_grace_s):
            sync.last_resume_at = None
            self._fire(ClientEvent.RESUME_SETTLED)

        # 5. Steady state
        if (
            not sync.in_debounce(now, self._config.debounce_s)
            and drift > self._config.steady_drift_s
            and payload.is_playing
            and not self._media.paused
        ):
            logger.info("Drift detected: %.2fs, syncing", drift)
            self._schedule_correction(payload.seek)
            return
        sync.local_seek = self._media.current_time

    def handle_media_ready(self) -> None:
        """Handle the media element having data for the current position."""
        sync = self._sync
        if self._track is None or not sync.has_joined or sync.is_paused_by_user:
            return
        if sync.server_playing:
            self._start_playback()

    def handle_time_update(self) -> None:
        """Follow the media element's own clock between snapshots."""
        if self._sync.has_joined and self._pending_correction is None:
            self._sync.local_seek = self._media.current_time

    def handle_loaded_metadata(self) -> float | None:
        """Return the duration to report to the server, if the media knows it."""
        if self._track is None:
            return None
        duration = self._media.duration
        if duration is None or not math.isfinite(duration) or duration <= 0:
            return None
        return duration

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _fire(self, event: ClientEvent) -> None:
        new_state = next_state(self._state, event)
        if new_state is not self._state:
            logger.debug("%s -> %s on %s", self._state.value, new_state.value, event.value)
            self._state = new_state

    def _change_track(self, payload: SyncPayload) -> None:
        assert payload.track is not None
        sync = self._sync
        self._cancel_pending()
        self._track = payload.track
        self._is_preparing = False
        sync.reset_for_track()
        sync.server_playing = payload.is_playing
        sync.local_seek = payload.seek
        logger.info("Loading track %s", payload.track)
        self._media.load(self._url_for(payload.track))
        self._fire(ClientEvent.TRACK_CHANGED)

    def _start_playback(self) -> None:
        """Seek to the join-time or latest server position and play."""
        sync = self._sync
        target = sync.join_seek if sync.join_seek is not None else sync.last_server_seek
        self._hard_seek(target, self._clock.monotonic())
        sync.has_completed_initial_sync = True
        self._fire(ClientEvent.INITIAL_SYNC_DONE)
        self._ensure_playing()

    def _reconcile_play_state(self, payload: SyncPayload) -> None:
        sync = self._sync
        retry = payload.is_playing and not sync.has_started_playback and self._media.has_data
        if payload.is_playing == sync.server_playing and not retry:
            return
        sync.server_playing = payload.is_playing
        if payload.is_playing:
            self._ensure_playing()
        else:
            self._ensure_paused()

    def _ensure_playing(self) -> None:
        sync = self._sync
        if not self._media.paused:
            sync.has_started_playback = True
            return
        try:
            self._media.play()
        except PlaybackRejectedError as err:
            sync.has_started_playback = False
            logger.warning("Play error: %s", err)
            return
        sync.has_started_playback = True

    def _ensure_paused(self) -> None:
        if not self._media.paused:
            self._media.pause()

    def _hard_seek(self, target: float, now: float) -> None:
        self._media.current_time = target
        self._sync.local_seek = target
        self._sync.last_sync_at = now

    def _schedule_correction(self, target: float) -> None:
        self._cancel_pending()
        generation = self._generation
        loop = self._loop or asyncio.get_running_loop()
        self._pending_correction = loop.call_soon(self._apply_correction, generation, target)

    def _apply_correction(self, generation: int, target: float) -> None:
        self._pending_correction = None
        sync = self._sync
        if generation != self._generation:
            logger.debug("Dropping stale correction to %.2fs", target)
            return
        if self._media.paused or sync.is_paused_by_user or not sync.has_joined:
            logger.debug("Dropping correction to %.2fs, no longer playing", target)
            return
        self._hard_seek(target, self._clock.monotonic())

    def _cancel_pending(self) -> None:
        self._generation += 1
        if self._pending_correction is not None:
            self._pending_correction.cancel()
            self._pending_correction = None
