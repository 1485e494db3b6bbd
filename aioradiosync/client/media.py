"""Abstraction of the local media element a listener plays audio with."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Callable
from enum import Enum, IntEnum

logger = logging.getLogger(__name__)


class ReadyState(IntEnum):
    """How much media data is available, mirroring HTML media elements."""

    HAVE_NOTHING = 0
    HAVE_METADATA = 1
    HAVE_CURRENT_DATA = 2
    HAVE_FUTURE_DATA = 3
    HAVE_ENOUGH_DATA = 4


class MediaEvent(Enum):
    """Events emitted by a media element."""

    LOADED_METADATA = "loadedmetadata"
    """Duration is known."""
    LOADED_DATA = "loadeddata"
    """Data for the current position is available, seeking and playing can start."""
    TIME_UPDATE = "timeupdate"
    """Playback position advanced."""
    ENDED = "ended"
    """Playback reached the end of the media."""


MediaEventCallback = Callable[[MediaEvent], None]


class MediaElement(ABC):
    """
    A locally buffered, independently clocked audio player.

    Implementations wrap whatever actually produces sound (a browser element
    behind a bridge, a native player, ...) and report MediaEvents through
    _signal_event().
    """

    def __init__(self) -> None:
        """Initialize the listener registry."""
        self._event_cbs: list[MediaEventCallback] = []

    @property
    @abstractmethod
    def source(self) -> str | None:
        """URL of the loaded media, None if nothing is loaded."""

    @abstractmethod
    def load(self, source: str) -> None:
        """Start loading ``source``, resetting the ready state."""

    @property
    @abstractmethod
    def ready_state(self) -> ReadyState:
        """Current ready state."""

    @property
    @abstractmethod
    def current_time(self) -> float:
        """Playback position in seconds."""

    @current_time.setter
    @abstractmethod
    def current_time(self, value: float) -> None:
        """Hard-seek to ``value`` seconds."""

    @property
    @abstractmethod
    def duration(self) -> float | None:
        """Duration in seconds once metadata is loaded."""

    @property
    @abstractmethod
    def paused(self) -> bool:
        """Whether playback is paused."""

    @abstractmethod
    def play(self) -> None:
        """
        Start or continue playback.

        Raises:
            PlaybackRejectedError: If the platform refuses to start playback.
        """

    @abstractmethod
    def pause(self) -> None:
        """Pause playback."""

    @property
    def has_data(self) -> bool:
        """Whether data for the current position is available."""
        return self.ready_state >= ReadyState.HAVE_CURRENT_DATA

    def add_event_listener(self, callback: MediaEventCallback) -> Callable[[], None]:
        """Register a callback for media events.

        Returns a function to remove the listener.
        """
        self._event_cbs.append(callback)
        return lambda: self._event_cbs.remove(callback)

    def _signal_event(self, event: MediaEvent) -> None:
        for cb in list(self._event_cbs):
            try:
                cb(event)
            except Exception:
                logger.exception("Error in media event callback %s", cb)
