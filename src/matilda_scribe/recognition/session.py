"""Streaming session controller.

StreamingSession drives one recognition request over a transport:
- Opens the socket and writes the start frame once it is open
- Forwards audio chunks as binary frames, never ahead of the start frame
- Parses inbound frames and dispatches results to the caller
- Reconnects once on a transient close, fails on anything else
- Sends the stop frame and disconnects when the caller stops

Socket events arrive on the transport's I/O thread and audio on the capture
thread; all mutable state is guarded by a single lock, and caller callbacks
run outside it.
"""

import threading
from collections import deque
from collections.abc import Callable

import numpy as np

from ..audio.conversion import to_pcm16_bytes
from ..core.config import setup_logging
from .accumulator import ResultsAccumulator
from .exceptions import (
    FatalDisconnect,
    MalformedResponse,
    NotConnectedError,
    RecognitionError,
    RecognitionServiceError,
    SocketClosedError,
    TranscriptionConnectionError,
    TransientDisconnect,
)
from .parser import parse_message
from .protocol import encode_keep_alive, encode_start, encode_stop
from .settings import RecognitionSettings
from .transport import SocketFactory, TransportSocket
from .types import ListeningAck, ResultsFrame, ServiceErrorMessage, SessionState, TranscriptionResult

logger = setup_logging(__name__)

ResultCallback = Callable[[TranscriptionResult], None]
FailureCallback = Callable[[RecognitionError], None]
StopHandle = Callable[[], None]


class StreamingSession:
    """Orchestrates one streaming recognition request.

    Example:
        session = StreamingSession(
            socket_factory=lambda listener: WebSocketTransport(url, listener),
            on_result=lambda result: print(result.transcript),
            on_failure=lambda error: print(f"failed: {error}"),
        )
        stop = session.start(RecognitionSettings(content_type="audio/l16;rate=16000"))
        session.feed_audio(pcm_chunk)
        stop()

    """

    def __init__(
        self,
        socket_factory: SocketFactory,
        on_result: ResultCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_closed: Callable[[], None] | None = None,
        on_listening: Callable[[], None] | None = None,
        max_reconnect_attempts: int = 1,
        transient_close_codes: tuple[int, ...] = (101,),
        max_pending_chunks: int = 256,
    ):
        """Initialize the session.

        Args:
            socket_factory: Builds a fresh transport for a listener
            on_result: Called once per transcription result
            on_failure: Called at most once with the terminal error
            on_closed: Called when the session ends cleanly
            on_listening: Called when the remote acknowledges it is listening
            max_reconnect_attempts: Reconnects allowed between successful opens
            transient_close_codes: Close codes that trigger a reconnect
            max_pending_chunks: Audio chunks held while connecting (oldest dropped)

        """
        self.socket_factory = socket_factory
        self.on_result = on_result
        self.on_failure = on_failure
        self.on_closed = on_closed
        self.on_listening = on_listening
        self.max_reconnect_attempts = max_reconnect_attempts
        self.transient_close_codes = frozenset(transient_close_codes)

        self._lock = threading.RLock()
        self._finished = threading.Event()
        self._state = SessionState.IDLE
        self._state_changed = threading.Condition(self._lock)
        self._settings: RecognitionSettings | None = None
        self._socket: TransportSocket | None = None
        self._audio_source = None
        self._ready = False
        self._acks = 0
        self._stop_requested = False
        self._cancelled = False
        self._awaiting_final = False
        self._reconnects = 0
        self._pending: deque[bytes] = deque(maxlen=max_pending_chunks)
        self._accumulator = ResultsAccumulator()
        self._error: RecognitionError | None = None

        self.chunks_sent = 0
        self.bytes_sent = 0
        self.chunks_dropped = 0

    @property
    def state(self) -> SessionState:
        """Current session state."""
        return self._state

    @property
    def is_listening(self) -> bool:
        """Whether the start frame is written and audio is being forwarded."""
        return self._ready

    @property
    def error(self) -> RecognitionError | None:
        """The terminal error, once the session has failed."""
        return self._error

    @property
    def results(self) -> tuple[TranscriptionResult, ...]:
        """Session-wide results merged by result index."""
        with self._lock:
            return self._accumulator.results

    @property
    def transcript(self) -> str:
        """Best transcript accumulated so far."""
        with self._lock:
            return self._accumulator.best_transcript

    @property
    def accumulator(self) -> ResultsAccumulator:
        return self._accumulator

    def start(self, settings: RecognitionSettings, audio_source=None) -> StopHandle:
        """Open the socket and begin the request.

        Args:
            settings: Settings serialized into the start frame
            audio_source: Optional AudioSource whose chunks are forwarded; when a
                finite source runs out the request is finished gracefully. A
                source that is not live is paced by the socket: its capture
                thread blocks while the session is connecting.

        Returns:
            Stop handle; calling it more than once is a no-op

        Raises:
            RecognitionError: The session was already started
            Exception: Whatever the audio source raised on start; the session
                is cancelled first

        """
        with self._lock:
            if self._state != SessionState.IDLE:
                raise RecognitionError(f"Session already started (state={self._state.value})")
            self._settings = settings
            self._set_state(SessionState.CONNECTING)
            self._socket = self.socket_factory(self)
            socket = self._socket
            self._audio_source = audio_source

        logger.info("Streaming session connecting")
        socket.connect()

        if audio_source is not None:
            on_chunk = self.feed_audio if audio_source.live else self.feed_audio_blocking
            try:
                audio_source.start(on_chunk, self.finish)
            except Exception as e:
                logger.error(f"Audio source failed to start, cancelling session: {e}")
                self.cancel()
                raise
        return self.stop

    def feed_audio(self, chunk: bytes | np.ndarray) -> None:
        """Forward one audio chunk. Safe to call from any thread.

        While connecting, chunks are held in a bounded buffer and the oldest
        is dropped when it is full.
        """
        data = to_pcm16_bytes(chunk)
        if not data:
            return

        with self._lock:
            self._accept(data)

    def feed_audio_blocking(self, chunk: bytes | np.ndarray, timeout: float | None = None) -> None:
        """Forward one audio chunk, waiting while the socket is (re)connecting.

        Meant for finite sources such as files, which can produce audio far
        faster than a socket opens. Falls back to holding the chunk if
        ``timeout`` expires first.
        """
        data = to_pcm16_bytes(chunk)
        if not data:
            return

        with self._state_changed:
            self._state_changed.wait_for(
                lambda: self._state != SessionState.CONNECTING or self._stop_requested, timeout
            )
            self._accept(data)

    def _accept(self, data: bytes) -> None:
        # Caller holds self._lock
        if self._state == SessionState.CONNECTING:
            if len(self._pending) == self._pending.maxlen:
                self.chunks_dropped += 1
                logger.warning(f"Pending audio full ({self._pending.maxlen} chunks), dropping oldest chunk")
            self._pending.append(data)
            return

        if self._state != SessionState.LISTENING:
            logger.debug(f"Dropping {len(data)}-byte chunk in state {self._state.value}")
            return

        self._send_audio(data)

    def stop(self) -> None:
        """Gracefully end the request: stop frame, then disconnect."""
        self._end_request(wait_for_results=False)

    def finish(self) -> None:
        """End the audio stream but keep receiving until the remote is done.

        The stop frame follows any audio already submitted (while connecting it
        is deferred until the start frame is written). The socket is disconnected
        once the remote acknowledges it is listening again, i.e. after its final
        results.
        """
        self._end_request(wait_for_results=True)

    def _end_request(self, wait_for_results: bool) -> None:
        with self._lock:
            if self._stop_requested or self._state.is_terminal:
                return
            self._stop_requested = True
            self._state_changed.notify_all()

        self._stop_audio_source()

        with self._lock:
            state = self._state
            if state == SessionState.LISTENING:
                self._send_stop(wait_for_results)
            elif state == SessionState.CONNECTING and wait_for_results:
                # Held audio still has to go out; the stop frame follows it once open
                self._awaiting_final = True
                logger.info("Finish requested while connecting, stop frame deferred until open")
            elif state == SessionState.CONNECTING:
                # Start frame never written, so there is nothing to stop on the wire
                self._set_state(SessionState.STOPPING)
                self._pending.clear()
                self._socket.disconnect()
                logger.info("Stopped while connecting, disconnecting")
            elif state == SessionState.IDLE:
                self._set_state(SessionState.CLOSED)
                self._finished.set()

    def _send_stop(self, wait_for_results: bool) -> None:
        # Caller holds self._lock
        self._set_state(SessionState.STOPPING)
        self._ready = False
        self._write_text(encode_stop())
        if wait_for_results:
            self._awaiting_final = True
            logger.info("Stop frame sent, waiting for final results")
        else:
            self._socket.disconnect()
            logger.info("Stop frame sent, disconnecting")

    def cancel(self) -> None:
        """Hard-abort the request: disconnect without sending the stop frame.

        Also cuts short a finish() that is still waiting for final results.
        """
        with self._lock:
            if self._cancelled or self._state.is_terminal:
                return
            self._cancelled = True
            self._stop_requested = True
            self._state_changed.notify_all()

        self._stop_audio_source()

        with self._lock:
            if self._state in (SessionState.CONNECTING, SessionState.LISTENING, SessionState.STOPPING):
                self._set_state(SessionState.STOPPING)
                self._ready = False
                self._awaiting_final = False
                self._pending.clear()
                self._socket.disconnect()
                logger.info("Session cancelled, disconnecting without stop frame")
            elif self._state == SessionState.IDLE:
                self._set_state(SessionState.CLOSED)
                self._finished.set()

    def keep_alive(self) -> None:
        """Send a no-op frame to reset the remote inactivity timer."""
        with self._lock:
            if self._state == SessionState.LISTENING:
                self._write_text(encode_keep_alive())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the session is closed or failed. Returns False on timeout."""
        return self._finished.wait(timeout)

    # Socket listener

    def on_open(self) -> None:
        with self._lock:
            if self._state != SessionState.CONNECTING:
                logger.debug(f"Ignoring socket open in state {self._state.value}")
                return

            try:
                self._socket.send_text(encode_start(self._settings))
            except NotConnectedError as e:
                failure = self._fail(TranscriptionConnectionError(f"Socket closed before start frame: {e}"))
            else:
                failure = None
                self._set_state(SessionState.LISTENING)
                self._ready = True
                self._reconnects = 0
                self._acks = 0
                pending = list(self._pending)
                self._pending.clear()
                logger.info(f"Start frame sent, forwarding audio ({len(pending)} chunks held while connecting)")
                for data in pending:
                    if not self._send_audio(data):
                        break
                if self._awaiting_final:
                    self._send_stop(wait_for_results=True)

        if failure is not None:
            self._report_failure(failure)

    def on_close(self, error: Exception | None) -> None:
        reconnect_socket = None
        failure = None
        closed = False

        with self._lock:
            if self._state.is_terminal or self._state == SessionState.IDLE:
                return
            self._ready = False

            if error is None:
                logger.info(f"Socket closed cleanly in state {self._state.value}")
                self._release(SessionState.CLOSED)
                closed = True
            elif self._state == SessionState.STOPPING and self._is_transient(error):
                logger.info(f"Transient close while stopping, ending session: {error}")
                self._release(SessionState.CLOSED)
                closed = True
            elif self._is_transient(error):
                transient = TransientDisconnect(error)
                if self._reconnects < self.max_reconnect_attempts:
                    self._reconnects += 1
                    logger.warning(
                        f"{transient}; reconnecting (attempt {self._reconnects}/{self.max_reconnect_attempts})"
                    )
                    self._set_state(SessionState.CONNECTING)
                    self._socket = self.socket_factory(self)
                    reconnect_socket = self._socket
                else:
                    failure = self._fail(FatalDisconnect(transient, attempts=self._reconnects))
            else:
                if isinstance(error, RecognitionError) and not isinstance(error, SocketClosedError):
                    failure = self._fail(error)
                else:
                    failure = self._fail(FatalDisconnect(error, attempts=self._reconnects))

        if reconnect_socket is not None:
            reconnect_socket.connect()
        if failure is not None:
            self._report_failure(failure, disconnect=False)
        if closed:
            self._stop_audio_source()
            self._invoke(self.on_closed)

    def on_text_message(self, text: str) -> None:
        with self._lock:
            if self._state not in (SessionState.LISTENING, SessionState.STOPPING):
                logger.debug(f"Ignoring message in state {self._state.value}")
                return

        try:
            message = parse_message(text)
        except MalformedResponse as e:
            logger.warning(f"Dropping malformed frame: {e}")
            return

        if isinstance(message, ListeningAck):
            with self._lock:
                self._acks += 1
                if self._awaiting_final and self._state == SessionState.STOPPING and self._acks > 1:
                    # The first ack answers the start frame; one after stop means results are complete
                    self._awaiting_final = False
                    logger.info("Final results received, disconnecting")
                    self._socket.disconnect()
            logger.debug("Remote endpoint is listening")
            self._invoke(self.on_listening)
            return

        if isinstance(message, ServiceErrorMessage):
            logger.error(f"Recognition service error: {message.error}")
            with self._lock:
                failure = self._fail(RecognitionServiceError(message.error))
            if failure is not None:
                self._report_failure(failure)
            return

        self._dispatch_results(message)

    # Internals

    def _dispatch_results(self, frame: ResultsFrame) -> None:
        with self._lock:
            if self._state.is_terminal:
                return
            self._accumulator.add(frame)

        for result in frame.results:
            self._invoke(self.on_result, result)

    def _is_transient(self, error: Exception) -> bool:
        return isinstance(error, SocketClosedError) and error.code in self.transient_close_codes

    def _send_audio(self, data: bytes) -> bool:
        # Caller holds self._lock
        try:
            self._socket.send_binary(data)
        except NotConnectedError:
            logger.debug(f"Socket not open, dropping {len(data)}-byte chunk")
            return False
        self.chunks_sent += 1
        self.bytes_sent += len(data)
        return True

    def _write_text(self, frame: str) -> None:
        # Caller holds self._lock
        try:
            self._socket.send_text(frame)
        except NotConnectedError:
            logger.debug(f"Socket not open, dropping control frame {frame}")

    def _set_state(self, state: SessionState) -> None:
        # Caller holds self._lock
        self._state = state
        self._state_changed.notify_all()

    def _release(self, state: SessionState) -> None:
        # Caller holds self._lock
        self._set_state(state)
        self._socket = None
        self._pending.clear()
        self._finished.set()

    def _fail(self, error: RecognitionError) -> tuple[RecognitionError, TransportSocket | None] | None:
        # Caller holds self._lock; returns what _report_failure needs, or None if already terminal
        if self._state.is_terminal:
            return None
        socket = self._socket
        self._error = error
        self._ready = False
        self._release(SessionState.FAILED)
        logger.error(f"Streaming session failed: {error}")
        return error, socket

    def _report_failure(self, failure: tuple[RecognitionError, TransportSocket | None], disconnect: bool = True) -> None:
        error, socket = failure
        if disconnect and socket is not None:
            socket.disconnect()
        self._stop_audio_source()
        self._invoke(self.on_failure, error)

    def _stop_audio_source(self) -> None:
        source = self._audio_source
        if source is None:
            return
        try:
            source.stop()
        except Exception as e:
            logger.error(f"Failed to stop audio source: {e}")

    def _invoke(self, callback, *args) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            logger.error(f"Error in session callback {getattr(callback, '__name__', callback)!r}: {e}")
