"""Resolve a directory of audio files into an ordered catalog of tracks."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from mutagen import File as MutagenFile

from aioradiosync.errors import CatalogError

logger = logging.getLogger(__name__)

UNKNOWN_ARTIST = "Unknown Artist"


@dataclass(frozen=True, slots=True)
class Track:
    """A playable audio file with display metadata."""

    id: str
    """Path relative to the mode directory, POSIX separators."""
    title: str
    artist: str


def _first_tag(tags: Any, key: str) -> str | None:
    for value in tags.get(key) or []:
        text = str(value).strip()
        if text:
            return text
    return None


def read_track(root: Path, path: Path) -> Track:
    """
    Build a Track for ``path`` located below ``root``.

    Tags are read with mutagen's easy interface. Unreadable files or missing
    tags fall back to the file stem as title and an unknown artist.
    """
    track_id = path.relative_to(root).as_posix()
    title: str | None = None
    artist: str | None = None
    try:
        audio = MutagenFile(path, easy=True)
        if audio is not None and audio.tags is not None:
            title = _first_tag(audio.tags, "title")
            artist = _first_tag(audio.tags, "artist")
    except Exception as err:  # noqa: BLE001
        logger.warning("Failed to extract metadata for %s: %s", track_id, err)
    return Track(id=track_id, title=title or path.stem, artist=artist or UNKNOWN_ARTIST)


def iter_audio_paths(directory: Path, extensions: Iterable[str]) -> list[Path]:
    """Return the audio files below ``directory`` in a stable order."""
    suffixes = {ext.lower() for ext in extensions}
    return sorted(
        (p for p in directory.rglob("*") if p.is_file() and p.suffix.lower() in suffixes),
        key=lambda p: p.relative_to(directory).as_posix(),
    )


class TrackCatalog:
    """Read-only, ordered collection of the tracks of one mode directory."""

    def __init__(self, directory: Path, tracks: Iterable[Track]) -> None:
        """Create a catalog from already resolved tracks."""
        self._directory = directory
        self._tracks: dict[str, Track] = {}
        for track in tracks:
            if track.id in self._tracks:
                raise CatalogError(f"Duplicate track id in catalog: {track.id}")
            self._tracks[track.id] = track
        if not self._tracks:
            raise CatalogError(f"No audio files found in {directory}")

    @classmethod
    def scan(cls, directory: Path, extensions: Iterable[str]) -> TrackCatalog:
        """
        Scan ``directory`` recursively and read the metadata of every audio file.

        This blocks on file I/O, use load() from the event loop.

        Raises:
            CatalogError: If the directory is missing or holds no audio files.
        """
        if not directory.is_dir():
            raise CatalogError(f"Music directory does not exist: {directory}")
        paths = iter_audio_paths(directory, extensions)
        logger.debug("Extracting metadata from %d files in %s", len(paths), directory)
        catalog = cls(directory, (read_track(directory, path) for path in paths))
        logger.info("Found %d tracks in %s", len(catalog), directory)
        return catalog

    @classmethod
    async def load(cls, directory: Path, extensions: Iterable[str]) -> TrackCatalog:
        """Run scan() in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, cls.scan, directory, tuple(extensions))

    @property
    def directory(self) -> Path:
        """Directory the catalog was built from."""
        return self._directory

    @property
    def ids(self) -> list[str]:
        """Track ids in catalog order."""
        return list(self._tracks)

    def get(self, track_id: str) -> Track:
        """Return the track with ``track_id``."""
        return self._tracks[track_id]

    def __len__(self) -> int:
        return len(self._tracks)

    def __iter__(self) -> Iterator[Track]:
        return iter(self._tracks.values())

    def __contains__(self, track_id: object) -> bool:
        return track_id in self._tracks
