"""Represents a single listener connected to the radio server."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import TYPE_CHECKING, cast

from aiohttp import WSMessage, WSMsgType, web

from aioradiosync.models import ClientMessage, ServerMessage, TrackDurationMessage, TrackEndMessage

MAX_PENDING_MSG = 64

logger = logging.getLogger(__name__)

# The cyclic import is not an issue during runtime, so hide it
# pyright: reportImportCycles=none
if TYPE_CHECKING:
    from .server import RadioServer


class Peer:
    """
    A listener connected to a RadioServer.

    The server keeps no playback state per listener: a peer only owns its
    websocket, its outgoing queue and the task writing that queue.
    """

    _server: RadioServer
    _request: web.Request
    _wsock: web.WebSocketResponse
    _writer_task: asyncio.Task[None] | None = None
    """Task responsible for sending JSON messages."""
    _to_write: asyncio.Queue[ServerMessage]
    """Queue for messages to be sent to the listener through the WebSocket."""
    _logger: logging.Logger

    def __init__(self, server: RadioServer, request: web.Request) -> None:
        """
        DO NOT CALL THIS CONSTRUCTOR. INTERNAL USE ONLY.

        Use RadioServer.on_peer_connect instead.
        """
        self._server = server
        self._request = request
        self._wsock = web.WebSocketResponse(heartbeat=55)
        self._peer_id = uuid.uuid4().hex[:8]
        self._logger = logger.getChild(self._peer_id)
        self._to_write = asyncio.Queue(maxsize=MAX_PENDING_MSG)

    @property
    def peer_id(self) -> str:
        """Identifier of this connection, only meaningful for logging."""
        return self._peer_id

    @property
    def remote(self) -> str | None:
        """Remote address of the listener."""
        return self._request.remote

    @property
    def closed(self) -> bool:
        """Whether the websocket is closed."""
        return self._wsock.closed

    def send_message(self, message: ServerMessage) -> None:
        """
        Enqueue a message to be sent to this listener only.

        A listener that does not keep up simply misses messages.
        """
        try:
            self._to_write.put_nowait(message)
        except asyncio.QueueFull:
            self._logger.warning("Outgoing queue full, dropping %s", type(message).__name__)

    async def handle(self) -> web.WebSocketResponse:
        """Handle the complete websocket connection lifecycle."""
        try:
            await self._setup_connection()
            self._server._on_peer_add(self)  # noqa: SLF001
            await self._run_message_loop()
        finally:
            await self._cleanup_connection()
        return self._wsock

    async def disconnect(self) -> None:
        """Close the connection to this listener."""
        if self._writer_task and not self._writer_task.done():
            self._logger.debug("Cancelling writer task")
            _ = self._writer_task.cancel()
        if not self._wsock.closed:
            _ = await self._wsock.close()

    async def _setup_connection(self) -> None:
        """Establish WebSocket connection."""
        try:
            async with asyncio.timeout(10):
                _ = await self._wsock.prepare(self._request)
        except TimeoutError:
            self._logger.warning("Timeout preparing request")
            raise
        self._logger.info("Listener connected from %s", self.remote)
        self._writer_task = self._server.loop.create_task(self._writer())

    async def _run_message_loop(self) -> None:
        """Run the main message processing loop."""
        wsock = self._wsock
        receive_task: asyncio.Task[WSMessage] | None = None
        try:
            while not wsock.closed:
                # Wait for either a message or the writer task to end (meaning the
                # listener disconnected or errored)
                receive_task = self._server.loop.create_task(wsock.receive())
                assert self._writer_task is not None  # for type checking
                done, pending = await asyncio.wait(
                    [receive_task, self._writer_task],
                    return_when=asyncio.FIRST_COMPLETED,
                )

                if self._writer_task in done:
                    self._logger.debug("Writer task ended, closing connection")
                    if receive_task in pending:
                        _ = receive_task.cancel()
                    break

                try:
                    msg = await receive_task
                except (ConnectionError, asyncio.CancelledError, TimeoutError) as e:
                    self._logger.error("Error receiving message: %s", e)
                    break

                if msg.type in (WSMsgType.CLOSE, WSMsgType.CLOSING, WSMsgType.CLOSED):
                    break

                if msg.type != WSMsgType.TEXT:
                    continue

                try:
                    self._handle_message(ClientMessage.from_json(cast("str", msg.data)))
                except Exception:
                    self._logger.exception("error handling message")
            self._logger.debug("wsock was closed")

        except asyncio.CancelledError:
            self._logger.debug("Connection closed by listener")
        except Exception:
            self._logger.exception("Unexpected error inside websocket API")
        finally:
            if receive_task and not receive_task.done():
                _ = receive_task.cancel()

    async def _cleanup_connection(self) -> None:
        """Clean up WebSocket connection and tasks."""
        try:
            await self.disconnect()
        except Exception:
            self._logger.exception("Failed to close websocket")
        self._server._on_peer_remove(self)  # noqa: SLF001
        self._logger.info("Listener disconnected")

    def _handle_message(self, message: ClientMessage) -> None:
        """Handle incoming feedback from the listener."""
        match message:
            case TrackEndMessage():
                self._logger.debug("Received trackEnd")
                self._server._handle_track_end()  # noqa: SLF001
            case TrackDurationMessage(payload=seconds):
                self._logger.debug("Received trackDuration %s", seconds)
                self._server._handle_track_duration(seconds)  # noqa: SLF001
            case _:
                self._logger.debug("Unhandled message type: %s", type(message).__name__)

    async def _writer(self) -> None:
        """Write outgoing messages from the queue."""
        wsock = self._wsock
        try:
            while not wsock.closed:
                item = await self._to_write.get()
                try:
                    await wsock.send_str(item.to_json())
                except ConnectionError:
                    self._logger.warning("Connection error sending JSON data, ending writer task")
                    break
            self._logger.debug("WebSocket Connection was closed, ending writer task")
        except asyncio.CancelledError:
            raise
        except Exception:
            self._logger.exception("Error in writer task for listener")
