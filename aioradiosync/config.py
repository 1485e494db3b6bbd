"""Tunable parameters for the radio engine and the client reconciler."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .errors import ConfigError
from .models.types import Mode

DEFAULT_EXTENSIONS = (".ogg", ".opus", ".mp3", ".flac", ".m4a", ".wav")


def mode_for(moment: datetime, day_start_hour: int, day_end_hour: int) -> Mode:
    """
    Return the mode for ``moment``.

    The day window is ``[day_start_hour, day_end_hour)`` in whole hours of the
    moment's own timezone. A window with ``day_start_hour > day_end_hour`` wraps
    past midnight.
    """
    hour = moment.hour
    if day_start_hour < day_end_hour:
        in_day = day_start_hour <= hour < day_end_hour
    else:
        in_day = hour >= day_start_hour or hour < day_end_hour
    return Mode.DAY if in_day else Mode.NIGHT


def _check_positive(name: str, value: float) -> None:
    if not math.isfinite(value) or value <= 0:
        raise ConfigError(f"{name} must be a positive number, got {value!r}")


@dataclass
class RadioConfig:
    """Server side configuration."""

    music_dirs: dict[Mode, Path] = field(
        default_factory=lambda: {Mode.DAY: Path("music"), Mode.NIGHT: Path("music")}
    )
    """Directory holding the audio files of each mode."""
    extensions: tuple[str, ...] = DEFAULT_EXTENSIONS
    """File suffixes (lower case, with dot) picked up by the catalog."""
    timezone: str = "Europe/Kyiv"
    """IANA name of the reference timezone used for mode computation."""
    day_start_hour: int = 6
    day_end_hour: int = 24
    min_track_play_s: float = 5.0
    """Minimum play time before a non-forced advance is honoured."""
    end_epsilon_s: float = 0.1
    broadcast_interval_s: float = 2.0
    transition_settle_s: float = 3.0
    upcoming_count: int = 10
    audio_prefix: str = "/music"
    station_names: dict[Mode, str] = field(
        default_factory=lambda: {Mode.DAY: "Radio SMIHUN", Mode.NIGHT: "Radio SOSUN"}
    )
    _tz: ZoneInfo = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Validate the configuration and resolve the timezone."""
        for hour_name in ("day_start_hour", "day_end_hour"):
            hour = getattr(self, hour_name)
            if not 0 <= hour <= 24:
                raise ConfigError(f"{hour_name} must be within 0..24, got {hour}")
        if self.day_start_hour % 24 == self.day_end_hour % 24 and (
            self.day_start_hour,
            self.day_end_hour,
        ) != (0, 24):
            raise ConfigError("day window must not be empty")
        _check_positive("broadcast_interval_s", self.broadcast_interval_s)
        _check_positive("end_epsilon_s", self.end_epsilon_s)
        if self.min_track_play_s < 0 or self.transition_settle_s < 0:
            raise ConfigError("min_track_play_s and transition_settle_s must not be negative")
        if self.upcoming_count < 0:
            raise ConfigError("upcoming_count must not be negative")
        missing = {Mode.DAY, Mode.NIGHT} - set(self.music_dirs)
        if missing:
            names = sorted(m.value for m in missing)
            raise ConfigError(f"no music directory configured for {names}")
        if not self.audio_prefix.startswith("/"):
            self.audio_prefix = "/" + self.audio_prefix
        self.audio_prefix = self.audio_prefix.rstrip("/") or "/music"
        self.extensions = tuple(ext.lower() for ext in self.extensions)
        try:
            self._tz = ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as err:
            raise ConfigError(f"unknown timezone: {self.timezone}") from err

    @property
    def tz(self) -> ZoneInfo:
        """Resolved reference timezone."""
        return self._tz

    def mode_at(self, moment: datetime) -> Mode:
        """Return the mode for ``moment`` after converting it to the reference timezone."""
        return mode_for(moment.astimezone(self._tz), self.day_start_hour, self.day_end_hour)

    def music_dir(self, mode: Mode) -> Path:
        """Return the directory of ``mode``."""
        return self.music_dirs[mode]

    def station_name(self, mode: Mode) -> str:
        """Return the station name announced while in ``mode``."""
        return self.station_names.get(mode, "")


@dataclass
class SyncConfig:
    """Client reconciliation thresholds, all in seconds."""

    initial_drift_s: float = 0.5
    """Drift above which the first snapshot after join/track change hard-seeks."""
    resume_drift_s: float = 1.0
    """Drift above which a resume from user pause hard-seeks."""
    steady_drift_s: float = 5.0
    """Drift above which a steady-state correction is issued."""
    debounce_s: float = 2.0
    """Quiet window after join or after the last correction."""
    resume_grace_s: float = 2.0
    """Window after a resume during which the tighter resume threshold applies."""

    def __post_init__(self) -> None:
        """Validate thresholds."""
        for name in ("initial_drift_s", "resume_drift_s", "steady_drift_s"):
            _check_positive(name, getattr(self, name))
        for name in ("debounce_s", "resume_grace_s"):
            value = getattr(self, name)
            if not math.isfinite(value) or value < 0:
                raise ConfigError(f"{name} must not be negative, got {value!r}")
