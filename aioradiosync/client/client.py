"""Radio client: connects to a radio server and keeps a media element in sync."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from contextlib import suppress
from types import TracebackType
from typing import Self
from urllib.parse import quote

from aiohttp import ClientSession, ClientWebSocketResponse, WSMessage, WSMsgType

from aioradiosync.clock import Clock, SystemClock
from aioradiosync.config import SyncConfig
from aioradiosync.models import (
    ClientMessage,
    ServerMessage,
    SyncMessage,
    SyncPayload,
    TrackDurationMessage,
    TrackEndMessage,
)

from .media import MediaElement, MediaEvent
from .reconciler import Reconciler

logger = logging.getLogger(__name__)

SyncCallback = Callable[[SyncPayload], Awaitable[None] | None]

WEBSOCKET_PATH = "/ws"
DEFAULT_AUDIO_PREFIX = "/music"


class RadioClient:
    """Async radio listener driving a local MediaElement."""

    def __init__(
        self,
        media: MediaElement,
        base_url: str,
        *,
        audio_prefix: str = DEFAULT_AUDIO_PREFIX,
        session: ClientSession | None = None,
        clock: Clock | None = None,
        config: SyncConfig | None = None,
    ) -> None:
        """
        Create a new radio client.

        Args:
            media: Media element the audio is played with.
            base_url: HTTP base URL of the server, e.g. ``http://localhost:3001``.
            audio_prefix: Path under which the server exposes audio files.
            session: aiohttp session to use, one is created (and owned) if omitted.
            clock: Source of monotonic time.
            config: Reconciliation thresholds.
        """
        self._media = media
        self._base_url = base_url.rstrip("/")
        self._audio_prefix = "/" + audio_prefix.strip("/")
        self._session = session
        self._owns_session = session is None
        self._clock = clock or SystemClock()
        self._config = config or SyncConfig()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._ws: ClientWebSocketResponse | None = None
        self._reader_task: asyncio.Task[None] | None = None
        self._send_lock = asyncio.Lock()
        self._connected = False
        self._reconciler: Reconciler | None = None
        self._remove_media_listener: Callable[[], None] | None = None
        self._sync_callbacks: list[SyncCallback] = []
        self._pending_sends: set[asyncio.Task[None]] = set()

    # ---------------------------------------------------------------------
    # Public API
    # ---------------------------------------------------------------------
    @property
    def connected(self) -> bool:
        """Return True if the client currently has an active connection."""
        return self._connected and self._ws is not None and not self._ws.closed

    @property
    def reconciler(self) -> Reconciler:
        """Reconciliation state machine of the current connection."""
        if self._reconciler is None:
            raise RuntimeError("Client is not connected")
        return self._reconciler

    def track_url(self, track_id: str) -> str:
        """Return the URL of the audio file of ``track_id``."""
        return f"{self._base_url}{self._audio_prefix}/{quote(track_id)}"

    async def connect(self) -> None:
        """Connect to the radio server via WebSocket."""
        if self.connected:
            logger.debug("Already connected")
            return

        self._loop = asyncio.get_running_loop()
        if self._session is None:
            self._session = ClientSession()

        url = self._base_url + WEBSOCKET_PATH
        logger.info("Connecting to radio server at %s", url)
        self._ws = await self._session.ws_connect(url, heartbeat=30)
        self._connected = True
        self._reconciler = Reconciler(
            self._media,
            self.track_url,
            clock=self._clock,
            loop=self._loop,
            config=self._config,
        )
        self._remove_media_listener = self._media.add_event_listener(self._on_media_event)
        self._reader_task = self._loop.create_task(self._reader_loop())

    async def disconnect(self) -> None:
        """Disconnect from the server and tear down the listener state."""
        self._connected = False
        current_task = asyncio.current_task(loop=self._loop) if self._loop else None

        if self._remove_media_listener is not None:
            self._remove_media_listener()
            self._remove_media_listener = None
        if self._reconciler is not None:
            self._reconciler.leave()
            self._reconciler = None
        if self._reader_task is not None:
            if self._reader_task is not current_task:
                _ = self._reader_task.cancel()
                with suppress(asyncio.CancelledError):
                    await self._reader_task
            self._reader_task = None
        if self._ws is not None:
            _ = await self._ws.close()
            self._ws = None
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    def join(self) -> None:
        """Start listening."""
        self.reconciler.join()

    def pause(self) -> None:
        """Pause local playback."""
        self.reconciler.pause()

    def resume(self) -> None:
        """Resume local playback, catching up with the server."""
        self.reconciler.resume()

    def toggle_pause(self) -> None:
        """Toggle local pause."""
        self.reconciler.toggle_pause()

    async def send_track_end(self) -> None:
        """Tell the server the current track ended locally."""
        await self._send_json(TrackEndMessage())

    async def send_track_duration(self, seconds: float) -> None:
        """Tell the server the duration of the current track."""
        await self._send_json(TrackDurationMessage(payload=seconds))

    def add_sync_listener(self, callback: SyncCallback) -> Callable[[], None]:
        """Register a callback invoked for every sync message after reconciliation.

        Returns a function to remove the listener.
        """
        self._sync_callbacks.append(callback)
        return lambda: self._sync_callbacks.remove(callback)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    async def _send_json(self, message: ClientMessage) -> None:
        if not self._ws or self._ws.closed:
            raise RuntimeError("WebSocket is not connected")
        async with self._send_lock:
            await self._ws.send_str(message.to_json())

    def _send_soon(self, message: ClientMessage) -> None:
        """Send from a synchronous media callback."""
        if not self.connected or self._loop is None:
            logger.debug("Not connected, dropping %s", type(message).__name__)
            return
        task = self._loop.create_task(self._send_json(message))
        self._pending_sends.add(task)
        task.add_done_callback(self._on_send_done)

    def _on_send_done(self, task: asyncio.Task[None]) -> None:
        self._pending_sends.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.warning("Failed to send message: %s", task.exception())

    def _on_media_event(self, event: MediaEvent) -> None:
        reconciler = self._reconciler
        if reconciler is None:
            return
        match event:
            case MediaEvent.LOADED_METADATA:
                duration = reconciler.handle_loaded_metadata()
                if duration is not None:
                    self._send_soon(TrackDurationMessage(payload=duration))
            case MediaEvent.LOADED_DATA:
                reconciler.handle_media_ready()
            case MediaEvent.TIME_UPDATE:
                reconciler.handle_time_update()
            case MediaEvent.ENDED:
                logger.info("Track ended, notifying server")
                self._send_soon(TrackEndMessage())

    async def _reader_loop(self) -> None:
        assert self._ws is not None
        try:
            async for msg in self._ws:
                await self._handle_ws_message(msg)
        except asyncio.CancelledError:  # pragma: no cover - cancellation path
            pass
        except Exception:
            logger.exception("WebSocket reader encountered an error")
        finally:
            if self._connected:
                await self.disconnect()

    async def _handle_ws_message(self, msg: WSMessage) -> None:
        if msg.type is WSMsgType.TEXT:
            await self._handle_json_message(msg.data)
        elif msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
            logger.info("WebSocket closed by server")
            await self.disconnect()
        elif msg.type is WSMsgType.ERROR:
            logger.error("WebSocket error: %s", self._ws.exception() if self._ws else "unknown")
            await self.disconnect()

    async def _handle_json_message(self, data: str) -> None:
        try:
            message = ServerMessage.from_json(data)
        except Exception:
            logger.exception("Failed to parse server message: %s", data)
            return

        match message:
            case SyncMessage(payload=payload):
                if self._reconciler is not None:
                    self._reconciler.handle_snapshot(payload)
                await self._notify_sync(payload)
            case _:
                logger.debug("Unhandled server message type: %s", type(message).__name__)

    async def _notify_sync(self, payload: SyncPayload) -> None:
        for callback in self._sync_callbacks:
            try:
                result = callback(payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception:
                logger.exception("Error in sync callback %s", callback)

    async def __aenter__(self) -> Self:
        """Enter the async context manager returning this instance."""
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Disconnect when leaving the async context manager."""
        await self.disconnect()
