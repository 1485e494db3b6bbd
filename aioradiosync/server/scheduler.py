"""Shuffle order, current index and the decision of when to move on."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Sequence
from contextlib import suppress

from aioradiosync.clock import Clock
from aioradiosync.config import RadioConfig
from aioradiosync.errors import CatalogError, EngineNotStartedError
from aioradiosync.models import Mode

from .catalog import TrackCatalog
from .timeline import TimelineAuthority

logger = logging.getLogger(__name__)


class Playlist:
    """Shuffled order of the track ids of one catalog."""

    def __init__(self, track_ids: Sequence[str], rng: random.Random) -> None:
        """Create a playlist and shuffle it."""
        if not track_ids:
            raise CatalogError("Cannot build a playlist without tracks")
        if len(set(track_ids)) != len(track_ids):
            raise CatalogError("Playlist contains duplicate track ids")
        self._ids = list(track_ids)
        self._rng = rng
        self.index = 0
        self.shuffle()

    def shuffle(self) -> None:
        """Fisher-Yates shuffle of the whole playlist, restarting at the first entry."""
        self._rng.shuffle(self._ids)
        self.index = 0

    @property
    def ids(self) -> list[str]:
        """Track ids in play order."""
        return list(self._ids)

    @property
    def current(self) -> str:
        """Id at the current index."""
        return self._ids[self.index]

    def next(self) -> str:
        """Move to the next entry, reshuffling once the playlist is exhausted."""
        self.index += 1
        if self.index >= len(self._ids):
            logger.debug("Playlist exhausted, reshuffling %d tracks", len(self._ids))
            self.shuffle()
        return self.current

    def upcoming(self, count: int) -> list[str]:
        """Return up to ``count`` ids following the current one, wrapping around."""
        size = len(self._ids)
        return [self._ids[(self.index + i) % size] for i in range(1, min(count + 1, size))]

    def __len__(self) -> int:
        return len(self._ids)


class PlaylistScheduler:
    """
    Owns the playlist of the active mode and decides when to advance.

    Advancing either moves to the next shuffled track or, when the time of day
    now calls for the other mode, starts a transition: the catalog of the new
    mode is built in the background while the timeline reports "preparing".
    """

    def __init__(
        self,
        config: RadioConfig,
        clock: Clock,
        timeline: TimelineAuthority,
        *,
        rng: random.Random | None = None,
    ) -> None:
        """Create a scheduler driving ``timeline``. Call start() before use."""
        self._config = config
        self._clock = clock
        self._timeline = timeline
        self._rng = rng or random.Random()
        self._catalog: TrackCatalog | None = None
        self._playlist: Playlist | None = None
        self._mode: Mode | None = None
        self._last_advance_at: float | None = None
        self._transition_task: asyncio.Task[None] | None = None

    @property
    def catalog(self) -> TrackCatalog | None:
        """Catalog of the active mode."""
        return self._catalog

    @property
    def playlist(self) -> Playlist | None:
        """Playlist of the active mode."""
        return self._playlist

    @property
    def mode(self) -> Mode | None:
        """Mode whose playlist is installed."""
        return self._mode

    @property
    def is_transitioning(self) -> bool:
        """Whether a mode transition is in flight."""
        return self._transition_task is not None

    def start(self, catalog: TrackCatalog, mode: Mode) -> None:
        """Install the first playlist and start its first track."""
        self._install(catalog, mode)
        self._timeline.end_transition(mode)
        self._play_current(self._clock.monotonic())

    def advance(self, *, force: bool = False, now: float | None = None) -> bool:
        """
        Move on to the next track.

        Unless ``force`` is set, the call is ignored when the current track
        started less than ``min_track_play_s`` ago, so a burst of "track ended"
        reports from many listeners advances only once.

        Returns whether the timeline changed (new track or transition started).
        """
        if self._playlist is None:
            raise EngineNotStartedError("Scheduler has no playlist, call start() first")
        if now is None:
            now = self._clock.monotonic()
        if self._transition_task is not None:
            logger.debug("Ignoring advance during mode transition")
            return False
        if (
            not force
            and self._timeline.current_track_id is not None
            and self._last_advance_at is not None
            and now - self._last_advance_at < self._config.min_track_play_s
        ):
            logger.debug(
                "Ignoring advance %.2fs after the previous one", now - self._last_advance_at
            )
            return False

        desired = self._config.mode_at(self._clock.now(self._config.tz))
        if desired != self._mode:
            self._begin_transition(desired)
            return True

        self._playlist.next()
        self._play_current(now)
        return True

    def upcoming(self, count: int) -> list[str]:
        """Ids of the next ``count`` tracks, empty while transitioning."""
        if self._playlist is None or self._transition_task is not None:
            return []
        return self._playlist.upcoming(count)

    async def wait_transition(self) -> None:
        """Wait for an in-flight transition to finish."""
        task = self._transition_task
        if task is not None:
            await asyncio.shield(task)

    async def cancel_transition(self) -> None:
        """Abort an in-flight transition, keeping the previous mode."""
        task = self._transition_task
        if task is None:
            return
        if not task.done():
            _ = task.cancel()
            with suppress(asyncio.CancelledError):
                await task
        if self._transition_task is task:
            # Cancelled before it got to run
            assert self._mode is not None
            self._transition_task = None
            self._timeline.end_transition(self._mode)

    def _install(self, catalog: TrackCatalog, mode: Mode) -> None:
        self._catalog = catalog
        self._playlist = Playlist(catalog.ids, self._rng)
        self._mode = mode

    def _play_current(self, now: float) -> None:
        assert self._playlist is not None
        assert self._catalog is not None
        track_id = self._playlist.current
        self._timeline.advance(track_id, now)
        self._last_advance_at = now
        track = self._catalog.get(track_id)
        logger.info("Now playing: %s - %s", track.artist, track.title)

    def _begin_transition(self, mode: Mode) -> None:
        assert self._mode is not None
        logger.info("Switching from %s to %s mode", self._mode.value, mode.value)
        self._timeline.begin_transition(mode)
        self._transition_task = asyncio.get_running_loop().create_task(
            self._run_transition(mode)
        )

    async def _run_transition(self, mode: Mode) -> None:
        """Rebuild the catalog for ``mode``, settle, then start playback."""
        previous = self._mode
        assert previous is not None
        try:
            catalog = await TrackCatalog.load(
                self._config.music_dir(mode), self._config.extensions
            )
            await asyncio.sleep(self._config.transition_settle_s)
        except asyncio.CancelledError:
            self._transition_task = None
            self._timeline.end_transition(previous)
            raise
        except Exception:
            # Keep the previous mode playing, the switch is retried on the next advance
            logger.exception(
                "Failed to prepare %s mode, staying in %s mode", mode.value, previous.value
            )
            self._transition_task = None
            self._timeline.end_transition(previous)
            assert self._playlist is not None
            self._playlist.next()
            self._play_current(self._clock.monotonic())
            return

        self._transition_task = None
        self._install(catalog, mode)
        self._timeline.end_transition(mode)
        self._play_current(self._clock.monotonic())
