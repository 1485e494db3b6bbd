"""Radio server: pushes the shared timeline to every connected listener."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from contextlib import suppress
from dataclasses import dataclass
from pathlib import PurePosixPath

from aiohttp import web

from aioradiosync.models import SyncMessage

from .engine import RadioEngine
from .peer import Peer

logger = logging.getLogger(__name__)

WEBSOCKET_PATH = "/ws"
STATUS_PATH = "/status"


class RadioEvent:
    """Base event type used by RadioServer.add_event_listener()."""


@dataclass
class PeerConnectedEvent(RadioEvent):
    """A listener connected."""

    peer_id: str
    listeners: int
    """Number of connected listeners after the change."""


@dataclass
class PeerDisconnectedEvent(RadioEvent):
    """A listener disconnected."""

    peer_id: str
    listeners: int
    """Number of connected listeners after the change."""


class RadioServer:
    """
    Websocket front end of a RadioEngine.

    Every ``broadcast_interval_s`` the current snapshot is pushed to all
    listeners, whether or not it changed. A listener that connects gets one
    snapshot right away. Listeners send back the duration they measured and
    the end of the track, which are forwarded to the engine.
    """

    _peers: set[Peer]
    loop: asyncio.AbstractEventLoop
    _event_cbs: list[Callable[[RadioEvent], Coroutine[None, None, None]]]
    _tick_task: asyncio.Task[None] | None
    _runner: web.AppRunner | None

    def __init__(self, loop: asyncio.AbstractEventLoop, engine: RadioEngine) -> None:
        """Initialize a new radio server for a started or to-be-started engine."""
        self._peers = set()
        self.loop = loop
        self._engine = engine
        self._event_cbs = []
        self._tick_task = None
        self._runner = None
        self._app: web.Application | None = None
        logger.debug("RadioServer initialized")

    @property
    def engine(self) -> RadioEngine:
        """Engine whose timeline is broadcast."""
        return self._engine

    @property
    def peers(self) -> set[Peer]:
        """Listeners currently connected."""
        return self._peers

    @property
    def app(self) -> web.Application:
        """The aiohttp application serving the websocket, status and audio routes."""
        if self._app is None:
            app = web.Application()
            prefix = self._engine.config.audio_prefix
            _ = app.router.add_get(WEBSOCKET_PATH, self.on_peer_connect)
            _ = app.router.add_get(STATUS_PATH, self._handle_status)
            _ = app.router.add_get(prefix + "/{track_id:.+}", self._handle_audio)
            app.on_startup.append(self._on_app_startup)
            app.on_shutdown.append(self._on_app_shutdown)
            self._app = app
        return self._app

    async def start(self, host: str = "0.0.0.0", port: int = 3001) -> None:  # noqa: S104
        """Serve the application on ``host``:``port``."""
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, host, port)
        await site.start()
        logger.info("Radio server running on %s:%d", host, port)

    async def stop(self) -> None:
        """Stop serving and disconnect every listener."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
        else:
            await self._stop_broadcasting()

    async def on_peer_connect(self, request: web.Request) -> web.WebSocketResponse:
        """Handle an incoming WebSocket connection from a listener."""
        logger.debug("Incoming listener connection from %s", request.remote)
        peer = Peer(self, request)
        return await peer.handle()

    def broadcast(self, message: SyncMessage) -> None:
        """Enqueue ``message`` for every connected listener."""
        for peer in list(self._peers):
            peer.send_message(message)

    def broadcast_snapshot(self) -> None:
        """Push the current snapshot to every listener."""
        if not self._engine.started:
            return
        self.broadcast(SyncMessage(payload=self._engine.snapshot().to_payload()))

    def add_event_listener(
        self, callback: Callable[[RadioEvent], Coroutine[None, None, None]]
    ) -> Callable[[], None]:
        """Register a callback to listen for listener connects and disconnects.

        Returns a function to remove the listener.
        """
        self._event_cbs.append(callback)
        return lambda: self._event_cbs.remove(callback)

    def _signal_event(self, event: RadioEvent) -> None:
        for cb in self._event_cbs:
            _ = self.loop.create_task(cb(event))

    def _on_peer_add(self, peer: Peer) -> None:
        """Register the peer and send it the current snapshot right away."""
        self._peers.add(peer)
        if self._engine.started:
            peer.send_message(SyncMessage(payload=self._engine.snapshot().to_payload()))
        self._signal_event(PeerConnectedEvent(peer.peer_id, len(self._peers)))

    def _on_peer_remove(self, peer: Peer) -> None:
        if peer not in self._peers:
            return
        self._peers.remove(peer)
        self._signal_event(PeerDisconnectedEvent(peer.peer_id, len(self._peers)))

    def _handle_track_end(self) -> None:
        if self._engine.report_track_end():
            self.broadcast_snapshot()

    def _handle_track_duration(self, seconds: float) -> None:
        _ = self._engine.report_duration(seconds)

    async def _tick(self) -> None:
        """Broadcast the snapshot on a fixed period until cancelled."""
        interval = self._engine.config.broadcast_interval_s
        while True:
            try:
                self.broadcast_snapshot()
            except Exception:
                logger.exception("Failed to broadcast snapshot")
            await asyncio.sleep(interval)

    def start_broadcasting(self) -> None:
        """Start the periodic broadcast if it is not running."""
        if self._tick_task is None or self._tick_task.done():
            self._tick_task = self.loop.create_task(self._tick())

    async def _stop_broadcasting(self) -> None:
        if self._tick_task is not None:
            _ = self._tick_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._tick_task
            self._tick_task = None
        for peer in list(self._peers):
            await peer.disconnect()

    async def _on_app_startup(self, _app: web.Application) -> None:
        self.start_broadcasting()

    async def _on_app_shutdown(self, _app: web.Application) -> None:
        await self._stop_broadcasting()

    async def _handle_status(self, _request: web.Request) -> web.Response:
        if not self._engine.started:
            return web.json_response({"started": False, "listeners": len(self._peers)})
        payload = self._engine.snapshot().to_payload().to_dict()
        payload["listeners"] = len(self._peers)
        return web.json_response(payload)

    async def _handle_audio(self, request: web.Request) -> web.StreamResponse:
        """Serve the audio file of a track of the active catalog."""
        track_id = request.match_info["track_id"]
        catalog = self._engine.scheduler.catalog if self._engine.started else None
        if catalog is None or track_id not in catalog:
            raise web.HTTPNotFound
        path = catalog.directory.joinpath(*PurePosixPath(track_id).parts)
        return web.FileResponse(path)
