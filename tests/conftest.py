"""Shared fixtures: a manual clock, an in-memory media element and music directories."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, tzinfo
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from aioradiosync.client import MediaElement, MediaEvent, ReadyState, Reconciler
from aioradiosync.config import RadioConfig
from aioradiosync.errors import PlaybackRejectedError
from aioradiosync.models import Mode, SyncPayload

KYIV = ZoneInfo("Europe/Kyiv")
DAY_TRACKS = ("a.mp3", "b.mp3", "c.ogg", "sub/d.flac")
NIGHT_TRACKS = ("n1.mp3", "n2.opus")


class ManualClock:
    """Clock whose monotonic and wall time only move when told to."""

    def __init__(self, wall: datetime | None = None) -> None:
        self.t = 1000.0
        self.wall = wall or datetime(2024, 6, 1, 12, 0, tzinfo=KYIV)

    def monotonic(self) -> float:
        return self.t

    def now(self, tz: tzinfo) -> datetime:
        return self.wall.astimezone(tz)

    def advance(self, seconds: float) -> None:
        self.t += seconds
        self.wall += timedelta(seconds=seconds)


class FakeMediaElement(MediaElement):
    """MediaElement that never produces sound; tests drive its clock and events."""

    def __init__(self) -> None:
        super().__init__()
        self._source: str | None = None
        self._ready = ReadyState.HAVE_NOTHING
        self._time = 0.0
        self._duration: float | None = None
        self._paused = True
        self.seeks: list[float] = []
        self.loads: list[str] = []
        self.reject_play = False
        self.play_calls = 0

    @property
    def source(self) -> str | None:
        return self._source

    def load(self, source: str) -> None:
        self._source = source
        self.loads.append(source)
        self._ready = ReadyState.HAVE_NOTHING
        self._time = 0.0
        self._duration = None
        self._paused = True

    @property
    def ready_state(self) -> ReadyState:
        return self._ready

    @property
    def current_time(self) -> float:
        return self._time

    @current_time.setter
    def current_time(self, value: float) -> None:
        self.seeks.append(value)
        self._time = value

    @property
    def duration(self) -> float | None:
        return self._duration

    @property
    def paused(self) -> bool:
        return self._paused

    def play(self) -> None:
        self.play_calls += 1
        if self.reject_play:
            raise PlaybackRejectedError("autoplay blocked")
        self._paused = False

    def pause(self) -> None:
        self._paused = True

    def finish_loading(self, duration: float | None = 200.0) -> None:
        """Make metadata and data available, emitting the matching events."""
        self._duration = duration
        self._ready = ReadyState.HAVE_METADATA
        self._signal_event(MediaEvent.LOADED_METADATA)
        self._ready = ReadyState.HAVE_ENOUGH_DATA
        self._signal_event(MediaEvent.LOADED_DATA)

    def tick(self, seconds: float) -> None:
        """Let local playback run for ``seconds``."""
        if not self._paused:
            self._time += seconds
            self._signal_event(MediaEvent.TIME_UPDATE)

    def end(self) -> None:
        self._paused = True
        self._signal_event(MediaEvent.ENDED)


def make_payload(
    track: str | None = "a.mp3",
    seek: float = 0.0,
    *,
    is_playing: bool = True,
    is_preparing: bool = False,
    mode: Mode = Mode.DAY,
) -> SyncPayload:
    return SyncPayload(
        track=track,
        title=track.rsplit(".", 1)[0] if track else None,
        artist="Unknown Artist" if track else None,
        mode=mode,
        seek=seek,
        is_playing=is_playing,
        is_preparing=is_preparing,
    )


def attach(reconciler: Reconciler, media: MediaElement) -> Callable[[], None]:
    """Forward media events to ``reconciler`` the way RadioClient does."""

    def on_event(event: MediaEvent) -> None:
        match event:
            case MediaEvent.LOADED_DATA:
                reconciler.handle_media_ready()
            case MediaEvent.TIME_UPDATE:
                reconciler.handle_time_update()

    return media.add_event_listener(on_event)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


def _make_dir(root: Path, names: tuple[str, ...]) -> Path:
    for name in names:
        path = root / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(b"not really audio")
    return root


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def media() -> FakeMediaElement:
    return FakeMediaElement()


@pytest.fixture
def music_dir(tmp_path: Path) -> Path:
    root = _make_dir(tmp_path / "day", DAY_TRACKS)
    (root / "notes.txt").write_text("skip me")
    return root


@pytest.fixture
def night_dir(tmp_path: Path) -> Path:
    return _make_dir(tmp_path / "night", NIGHT_TRACKS)


@pytest.fixture
def config(music_dir: Path, night_dir: Path) -> RadioConfig:
    return RadioConfig(
        music_dirs={Mode.DAY: music_dir, Mode.NIGHT: night_dir},
        day_start_hour=6,
        day_end_hour=22,
        transition_settle_s=0.01,
    )
