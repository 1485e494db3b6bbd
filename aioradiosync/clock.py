"""Time sources shared by the server engine and the client reconciler."""

from __future__ import annotations

import time
from datetime import datetime, tzinfo
from typing import Protocol


class Clock(Protocol):
    """Source of monotonic and wall-clock time."""

    def monotonic(self) -> float:
        """Return a monotonic timestamp in seconds."""
        ...

    def now(self, tz: tzinfo) -> datetime:
        """Return the current wall-clock time in ``tz``."""
        ...


class SystemClock:
    """Clock backed by the operating system."""

    def monotonic(self) -> float:
        """Return ``time.monotonic()``."""
        return time.monotonic()

    def now(self, tz: tzinfo) -> datetime:
        """Return the aware current time in ``tz``."""
        return datetime.now(tz)
