from pathlib import Path
from types import SimpleNamespace

import pytest

from aioradiosync.config import DEFAULT_EXTENSIONS
from aioradiosync.errors import CatalogError
from aioradiosync.server import catalog as catalog_module
from aioradiosync.server.catalog import UNKNOWN_ARTIST, Track, TrackCatalog, read_track


def test_scan_picks_up_audio_files_recursively(music_dir: Path) -> None:
    catalog = TrackCatalog.scan(music_dir, DEFAULT_EXTENSIONS)
    assert catalog.ids == ["a.mp3", "b.mp3", "c.ogg", "sub/d.flac"]
    assert "notes.txt" not in catalog
    assert len(catalog) == 4


def test_unreadable_files_fall_back_to_file_name(music_dir: Path) -> None:
    catalog = TrackCatalog.scan(music_dir, DEFAULT_EXTENSIONS)
    track = catalog.get("sub/d.flac")
    assert track == Track(id="sub/d.flac", title="d", artist=UNKNOWN_ARTIST)


def test_tags_are_used_when_present(
    music_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    tags = {"title": ["  Song  "], "artist": ["", "Band"]}
    monkeypatch.setattr(
        catalog_module, "MutagenFile", lambda path, easy: SimpleNamespace(tags=tags)
    )
    track = read_track(music_dir, music_dir / "a.mp3")
    assert track.title == "Song"
    assert track.artist == "Band"


def test_missing_tags_fall_back(music_dir: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        catalog_module, "MutagenFile", lambda path, easy: SimpleNamespace(tags=None)
    )
    track = read_track(music_dir, music_dir / "b.mp3")
    assert (track.title, track.artist) == ("b", UNKNOWN_ARTIST)


def test_empty_directory(tmp_path: Path) -> None:
    (tmp_path / "readme.txt").write_text("no music here")
    with pytest.raises(CatalogError, match="No audio files"):
        TrackCatalog.scan(tmp_path, DEFAULT_EXTENSIONS)


def test_missing_directory(tmp_path: Path) -> None:
    with pytest.raises(CatalogError, match="does not exist"):
        TrackCatalog.scan(tmp_path / "nope", DEFAULT_EXTENSIONS)


def test_duplicate_ids_rejected(tmp_path: Path) -> None:
    track = Track(id="a.mp3", title="a", artist=UNKNOWN_ARTIST)
    with pytest.raises(CatalogError, match="Duplicate"):
        TrackCatalog(tmp_path, [track, track])


async def test_load_runs_in_executor(music_dir: Path) -> None:
    catalog = await TrackCatalog.load(music_dir, [".ogg"])
    assert catalog.ids == ["c.ogg"]
    assert catalog.directory == music_dir
