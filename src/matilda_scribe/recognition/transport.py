#!/usr/bin/env python3
"""WebSocket transport for streaming recognition.

A transport owns exactly one network connection for its lifetime. Its I/O runs
on a dedicated thread with its own asyncio loop, so callers on any thread can
submit frames without blocking; frames are written in submission order.
Reconnecting means constructing a new transport.
"""

import asyncio
import ssl
import threading
from collections.abc import Callable
from typing import Protocol

import websockets
from websockets.exceptions import ConnectionClosed, InvalidStatus, WebSocketException

from ..core.config import setup_logging
from .exceptions import NotConnectedError, SocketClosedError, TranscriptionConnectionError

logger = setup_logging(__name__)

# Close codes that end a connection cleanly
NORMAL_CLOSE_CODES = frozenset({1000, 1005})

_CLOSE = object()


class SocketListener(Protocol):
    """Receives lifecycle and message events from a transport."""

    def on_open(self) -> None: ...

    def on_close(self, error: Exception | None) -> None: ...

    def on_text_message(self, text: str) -> None: ...


class TransportSocket(Protocol):
    """A single full-duplex connection to the recognition endpoint."""

    def connect(self) -> None: ...

    def disconnect(self) -> None: ...

    def send_text(self, text: str) -> None: ...

    def send_binary(self, data: bytes) -> None: ...


SocketFactory = Callable[[SocketListener], TransportSocket]


class WebSocketTransport:
    """Transport backed by the ``websockets`` asyncio client.

    Events are delivered to the listener on the transport's I/O thread:
    ``on_open`` once the handshake completes, ``on_text_message`` for each
    inbound text frame and ``on_close`` exactly once at the end. ``on_close``
    receives ``None`` for a normal close, SocketClosedError for an abnormal
    close or a rejected handshake, and TranscriptionConnectionError when the
    endpoint could not be reached.
    """

    def __init__(
        self,
        url: str,
        listener: SocketListener,
        headers: dict[str, str] | None = None,
        open_timeout: float = 10.0,
        ssl_context: ssl.SSLContext | None = None,
    ):
        """Initialize the transport.

        Args:
            url: ws:// or wss:// URL of the recognize endpoint
            listener: Receiver of socket events
            headers: Extra HTTP headers for the opening handshake
            open_timeout: Seconds allowed for the opening handshake
            ssl_context: Optional TLS context for wss:// URLs

        """
        self.url = url
        self.listener = listener
        self.headers = dict(headers or {})
        self.open_timeout = open_timeout
        self.ssl_context = ssl_context

        self._lock = threading.Lock()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._outbox: asyncio.Queue | None = None
        self._open = False
        self._closing = False
        self._finished = False

    @property
    def is_open(self) -> bool:
        return self._open

    def connect(self) -> None:
        """Open the connection on a background I/O thread. Idempotent."""
        with self._lock:
            if self._thread is not None:
                logger.debug(f"connect() ignored, transport for {self.url} already started")
                return
            self._thread = threading.Thread(target=self._run, name="scribe-socket", daemon=True)
            self._thread.start()

    def disconnect(self) -> None:
        """Close the connection once frames already submitted are written."""
        with self._lock:
            if self._closing or self._finished:
                return
            self._closing = True
            self._open = False
            if self._loop is not None and self._outbox is not None:
                self._submit(_CLOSE)

    def send_text(self, text: str) -> None:
        self._send(text)

    def send_binary(self, data: bytes) -> None:
        self._send(bytes(data))

    def join(self, timeout: float | None = None) -> bool:
        """Wait for the I/O thread to finish. Returns True if it has."""
        thread = self._thread
        if thread is None:
            return True
        if thread is not threading.current_thread():
            thread.join(timeout)
        return not thread.is_alive()

    def _send(self, frame: str | bytes) -> None:
        with self._lock:
            if not self._open:
                raise NotConnectedError("Socket is not open")
            self._submit(frame)

    def _submit(self, item: object) -> None:
        # Caller holds self._lock
        try:
            self._loop.call_soon_threadsafe(self._outbox.put_nowait, item)
        except RuntimeError:
            # Loop already shut down; on_close has been or is being delivered
            self._open = False

    def _run(self) -> None:
        try:
            asyncio.run(self._main())
        except Exception as e:
            logger.error(f"Transport I/O thread crashed: {e}")
            self._finish(TranscriptionConnectionError(f"Transport failure: {e}"))

    async def _main(self) -> None:
        loop = asyncio.get_running_loop()
        outbox: asyncio.Queue = asyncio.Queue()

        connect_kwargs = {"additional_headers": self.headers, "open_timeout": self.open_timeout}
        if self.ssl_context is not None and self.url.startswith("wss://"):
            connect_kwargs["ssl"] = self.ssl_context

        try:
            websocket = await websockets.connect(self.url, **connect_kwargs)
        except InvalidStatus as e:
            status = e.response.status_code
            logger.warning(f"Handshake with {self.url} rejected: HTTP {status}")
            self._finish(SocketClosedError(status, "Invalid HTTP upgrade"))
            return
        except (OSError, TimeoutError, WebSocketException) as e:
            logger.error(f"Failed to connect to {self.url}: {e}")
            self._finish(TranscriptionConnectionError(f"Failed to connect to {self.url}: {e}"))
            return

        with self._lock:
            abort = self._closing
            if not abort:
                self._loop = loop
                self._outbox = outbox
                self._open = True

        if abort:
            logger.debug("Disconnect requested while connecting, closing immediately")
            await websocket.close()
            self._finish(None)
            return

        logger.info(f"Connected to {self.url}")
        self._notify("on_open")

        writer = asyncio.create_task(self._write_loop(websocket, outbox))
        try:
            async for message in websocket:
                if isinstance(message, str):
                    self._notify("on_text_message", message)
                else:
                    logger.debug(f"Ignoring {len(message)}-byte binary frame from server")
        except ConnectionClosed:
            pass
        finally:
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass

        code = websocket.close_code
        reason = websocket.close_reason or ""
        if code in NORMAL_CLOSE_CODES:
            logger.info(f"Connection closed normally (code={code})")
            self._finish(None)
        else:
            logger.warning(f"Connection closed abnormally (code={code}, reason={reason!r})")
            self._finish(SocketClosedError(code, reason))

    async def _write_loop(self, websocket, outbox: asyncio.Queue) -> None:
        while True:
            frame = await outbox.get()
            if frame is _CLOSE:
                await websocket.close()
                return
            try:
                await websocket.send(frame)
            except ConnectionClosed as e:
                logger.debug(f"Dropping frame, connection closed: {e}")
                return

    def _finish(self, error: Exception | None) -> None:
        with self._lock:
            if self._finished:
                return
            self._finished = True
            self._open = False
        self._notify("on_close", error)

    def _notify(self, event: str, *args) -> None:
        try:
            getattr(self.listener, event)(*args)
        except Exception as e:
            logger.error(f"Error in socket listener {event}: {e}")
