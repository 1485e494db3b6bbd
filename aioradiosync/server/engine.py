"""The radio engine: the one owner of catalog, playlist and timeline."""

from __future__ import annotations

import dataclasses
import logging
import random

from aioradiosync.clock import Clock, SystemClock
from aioradiosync.config import RadioConfig
from aioradiosync.errors import EngineNotStartedError
from aioradiosync.models import Mode

from .catalog import Track, TrackCatalog
from .scheduler import PlaylistScheduler
from .timeline import Snapshot, TimelineAuthority

logger = logging.getLogger(__name__)


class RadioEngine:
    """
    Authoritative playback state of the station.

    The broadcast loop and the handlers of inbound listener events only ever
    touch playback through the methods of this object. Each method runs to
    completion without awaiting, so callbacks serialized by the event loop need
    no further locking. The only background work is the catalog rebuild of a
    mode transition, during which snapshots report "preparing".
    """

    _timeline: TimelineAuthority | None
    _scheduler: PlaylistScheduler | None

    def __init__(
        self,
        config: RadioConfig | None = None,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
    ) -> None:
        """Create an engine, call start() to build the catalog and begin playing."""
        self._config = config or RadioConfig()
        self._clock = clock or SystemClock()
        self._rng = rng
        self._timeline = None
        self._scheduler = None

    @property
    def config(self) -> RadioConfig:
        """Configuration of this engine."""
        return self._config

    @property
    def started(self) -> bool:
        """Whether start() completed."""
        return self._scheduler is not None

    @property
    def timeline(self) -> TimelineAuthority:
        """Timeline authority, for inspection."""
        return self._require_started()[1]

    @property
    def scheduler(self) -> PlaylistScheduler:
        """Playlist scheduler, for inspection."""
        return self._require_started()[0]

    @property
    def mode(self) -> Mode:
        """Mode currently reported to listeners."""
        return self.timeline.state.mode

    @property
    def current_track(self) -> Track | None:
        """Track being played, None while preparing."""
        scheduler, timeline = self._require_started()
        track_id = timeline.current_track_id
        catalog = scheduler.catalog
        if track_id is None or catalog is None or track_id not in catalog:
            return None
        return catalog.get(track_id)

    async def start(self) -> None:
        """
        Build the catalog of the current mode and start its first track.

        Raises:
            CatalogError: If the directory of the current mode holds no playable files.
        """
        if self._scheduler is not None:
            logger.debug("Radio engine already started")
            return
        config = self._config
        mode = config.mode_at(self._clock.now(config.tz))
        logger.info("Starting radio engine in %s mode", mode.value)
        catalog = await TrackCatalog.load(config.music_dir(mode), config.extensions)
        timeline = TimelineAuthority(mode, end_epsilon_s=config.end_epsilon_s)
        scheduler = PlaylistScheduler(config, self._clock, timeline, rng=self._rng)
        scheduler.start(catalog, mode)
        self._timeline = timeline
        self._scheduler = scheduler

    async def stop(self) -> None:
        """Abort any in-flight transition."""
        if self._scheduler is not None:
            await self._scheduler.cancel_transition()

    def snapshot(self) -> Snapshot:
        """
        Return the current snapshot of the timeline.

        A track that has reached its known duration is advanced first, so the
        returned snapshot never describes a finished track.
        """
        scheduler, timeline = self._require_started()
        now = self._clock.monotonic()
        if not timeline.is_transitioning and timeline.should_advance(now):
            logger.debug("Track %s reached its end", timeline.current_track_id)
            _ = scheduler.advance(force=True, now=now)

        snapshot = timeline.snapshot(now, scheduler.catalog)
        station = self._config.station_name(snapshot.mode)
        catalog = scheduler.catalog
        playlist = scheduler.playlist
        if snapshot.track is None or catalog is None or playlist is None:
            return dataclasses.replace(snapshot, station=station)
        return dataclasses.replace(
            snapshot,
            upcoming=tuple(
                catalog.get(track_id)
                for track_id in scheduler.upcoming(self._config.upcoming_count)
            ),
            current_index=playlist.index,
            total_tracks=len(playlist),
            station=station,
        )

    def report_track_end(self) -> bool:
        """Handle a listener reporting the end of the track, subject to the min play guard."""
        scheduler, _ = self._require_started()
        return scheduler.advance(force=False)

    def report_duration(self, seconds: float) -> bool:
        """Handle a listener reporting the duration of the current track."""
        _, timeline = self._require_started()
        try:
            value = float(seconds)
        except (TypeError, ValueError):
            logger.debug("Ignoring non-numeric duration %r", seconds)
            return False
        return timeline.report_duration(value)

    def skip(self) -> bool:
        """Advance immediately, bypassing the min play guard."""
        scheduler, _ = self._require_started()
        return scheduler.advance(force=True)

    def pause(self) -> bool:
        """Hold the timeline at its current position."""
        _, timeline = self._require_started()
        paused = timeline.pause(self._clock.monotonic())
        if paused:
            logger.info("Playback paused")
        return paused

    def resume(self) -> bool:
        """Continue a held timeline."""
        _, timeline = self._require_started()
        resumed = timeline.resume(self._clock.monotonic())
        if resumed:
            logger.info("Playback resumed")
        return resumed

    def _require_started(self) -> tuple[PlaylistScheduler, TimelineAuthority]:
        if self._scheduler is None or self._timeline is None:
            raise EngineNotStartedError("Radio engine was not started")
        return self._scheduler, self._timeline
