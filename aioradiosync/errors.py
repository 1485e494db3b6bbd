"""Exceptions raised by aioradiosync."""

from __future__ import annotations


class RadioError(Exception):
    """Base class for all aioradiosync errors."""


class ConfigError(RadioError, ValueError):
    """A configuration value is out of range or cannot be resolved."""


class CatalogError(RadioError):
    """A mode directory could not be turned into a playable catalog."""


class EngineNotStartedError(RadioError):
    """The engine was used before start() completed."""


class PlaybackRejectedError(RadioError):
    """The local media element refused to start playback (e.g. autoplay policy)."""
