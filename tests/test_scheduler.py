import asyncio
import dataclasses
import random
from datetime import datetime
from pathlib import Path

import pytest
from conftest import DAY_TRACKS, KYIV, NIGHT_TRACKS, ManualClock

from aioradiosync.config import RadioConfig
from aioradiosync.errors import CatalogError, EngineNotStartedError
from aioradiosync.models import Mode
from aioradiosync.server.catalog import TrackCatalog
from aioradiosync.server.scheduler import Playlist, PlaylistScheduler
from aioradiosync.server.timeline import TimelineAuthority

NIGHT_TIME = datetime(2024, 6, 1, 23, 30, tzinfo=KYIV)


def _scheduler(config: RadioConfig, clock: ManualClock) -> PlaylistScheduler:
    timeline = TimelineAuthority(Mode.DAY, end_epsilon_s=config.end_epsilon_s)
    scheduler = PlaylistScheduler(config, clock, timeline, rng=random.Random(7))
    catalog = TrackCatalog.scan(config.music_dir(Mode.DAY), config.extensions)
    scheduler.start(catalog, Mode.DAY)
    return scheduler


def _timeline(scheduler: PlaylistScheduler) -> TimelineAuthority:
    return scheduler._timeline  # noqa: SLF001


def test_playlist_is_a_permutation() -> None:
    ids = [f"{i}.mp3" for i in range(20)]
    playlist = Playlist(ids, random.Random(3))
    assert sorted(playlist.ids) == sorted(ids)
    played = [playlist.current] + [playlist.next() for _ in range(len(ids) - 1)]
    assert sorted(played) == sorted(ids)


def test_playlist_reshuffles_when_exhausted() -> None:
    playlist = Playlist(["a", "b", "c"], random.Random(1))
    for _ in range(2):
        playlist.next()
    assert playlist.index == 2
    playlist.next()
    assert playlist.index == 0
    assert sorted(playlist.ids) == ["a", "b", "c"]


def test_playlist_upcoming_wraps_and_excludes_current() -> None:
    playlist = Playlist(["a", "b", "c", "d"], random.Random(1))
    playlist.next()
    playlist.next()
    upcoming = playlist.upcoming(10)
    assert len(upcoming) == 3
    assert playlist.current not in upcoming
    assert playlist.upcoming(1) == [playlist.ids[3]]


def test_playlist_rejects_empty_and_duplicates() -> None:
    with pytest.raises(CatalogError):
        Playlist([], random.Random())
    with pytest.raises(CatalogError):
        Playlist(["a", "a"], random.Random())


def test_start_plays_first_track(config: RadioConfig, clock: ManualClock) -> None:
    scheduler = _scheduler(config, clock)
    timeline = _timeline(scheduler)
    assert scheduler.mode is Mode.DAY
    assert timeline.current_track_id == scheduler.playlist.current
    assert timeline.current_track_id in DAY_TRACKS
    assert timeline.state.is_playing


def test_advance_before_start(config: RadioConfig, clock: ManualClock) -> None:
    scheduler = PlaylistScheduler(config, clock, TimelineAuthority(Mode.DAY))
    with pytest.raises(EngineNotStartedError):
        scheduler.advance()


def test_burst_of_track_end_reports_advances_once(
    config: RadioConfig, clock: ManualClock
) -> None:
    scheduler = _scheduler(config, clock)
    timeline = _timeline(scheduler)
    first = timeline.current_track_id

    clock.advance(1.0)
    assert [scheduler.advance() for _ in range(5)] == [False] * 5
    assert timeline.current_track_id == first

    clock.advance(5.0)
    results = [scheduler.advance() for _ in range(5)]
    assert results == [True, False, False, False, False]
    assert timeline.current_track_id != first
    assert scheduler.playlist.index == 1


def test_forced_advance_bypasses_guard(config: RadioConfig, clock: ManualClock) -> None:
    scheduler = _scheduler(config, clock)
    assert scheduler.advance(force=True)
    assert scheduler.advance(force=True)
    assert scheduler.playlist.index == 2


def test_advance_restarts_timeline(config: RadioConfig, clock: ManualClock) -> None:
    scheduler = _scheduler(config, clock)
    timeline = _timeline(scheduler)
    timeline.report_duration(200.0)
    clock.advance(10.0)
    scheduler.advance()
    assert timeline.seek(clock.monotonic()) == 0.0
    assert timeline.state.known_duration_s is None


async def test_mode_change_rebuilds_catalog(config: RadioConfig, clock: ManualClock) -> None:
    scheduler = _scheduler(config, clock)
    timeline = _timeline(scheduler)
    clock.wall = NIGHT_TIME

    assert scheduler.advance(force=True)
    assert scheduler.is_transitioning
    snapshot = timeline.snapshot(clock.monotonic(), scheduler.catalog)
    assert snapshot.is_preparing
    assert snapshot.track is None
    assert snapshot.mode is Mode.NIGHT
    assert scheduler.upcoming(10) == []
    # advances are ignored until the new catalog is in place
    assert not scheduler.advance(force=True)

    await scheduler.wait_transition()
    assert not scheduler.is_transitioning
    assert scheduler.mode is Mode.NIGHT
    assert timeline.current_track_id in NIGHT_TRACKS
    snapshot = timeline.snapshot(clock.monotonic(), scheduler.catalog)
    assert not snapshot.is_preparing
    assert snapshot.is_playing
    assert snapshot.mode is Mode.NIGHT


async def test_transition_waits_for_settle_delay(
    config: RadioConfig, clock: ManualClock
) -> None:
    config = dataclasses.replace(config, transition_settle_s=0.3)
    scheduler = _scheduler(config, clock)
    clock.wall = NIGHT_TIME
    scheduler.advance(force=True)

    await asyncio.sleep(0.1)
    assert scheduler.is_transitioning
    assert _timeline(scheduler).current_track_id is None

    await scheduler.wait_transition()
    assert _timeline(scheduler).current_track_id in NIGHT_TRACKS


async def test_failed_rebuild_restores_previous_mode(
    config: RadioConfig, clock: ManualClock, tmp_path: Path
) -> None:
    config = dataclasses.replace(
        config, music_dirs={Mode.DAY: config.music_dir(Mode.DAY), Mode.NIGHT: tmp_path / "gone"}
    )
    scheduler = _scheduler(config, clock)
    timeline = _timeline(scheduler)
    clock.wall = NIGHT_TIME

    assert scheduler.advance(force=True)
    await scheduler.wait_transition()

    assert not scheduler.is_transitioning
    assert scheduler.mode is Mode.DAY
    assert timeline.state.mode is Mode.DAY
    assert timeline.current_track_id in DAY_TRACKS
    assert timeline.state.is_playing
    assert scheduler.playlist.index == 1


async def test_cancelled_transition_restores_previous_mode(
    config: RadioConfig, clock: ManualClock
) -> None:
    config = dataclasses.replace(config, transition_settle_s=10.0)
    scheduler = _scheduler(config, clock)
    clock.wall = NIGHT_TIME
    scheduler.advance(force=True)

    await scheduler.cancel_transition()
    assert not scheduler.is_transitioning
    assert _timeline(scheduler).state.mode is Mode.DAY
