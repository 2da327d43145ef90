#!/usr/bin/env python3
"""High-level client for the streaming recognition endpoint.

Wires configuration, the WebSocket transport and StreamingSession together,
and offers blocking helpers for transcribing in-memory audio or a file, plus
live microphone streaming with optional Opus compression.
"""

import ssl
from pathlib import Path

from ..audio.sources import AudioSource, BufferAudioSource, MicrophoneAudioSource
from ..core.config import ConfigLoader, get_config, setup_logging
from .exceptions import AudioDroppedError
from .protocol import build_recognize_url
from .session import FailureCallback, ResultCallback, StreamingSession
from .settings import RecognitionSettings
from .transport import SocketFactory, SocketListener, WebSocketTransport

logger = setup_logging(__name__)


class RecognitionClient:
    """Factory for streaming sessions against one configured endpoint."""

    def __init__(self, config: ConfigLoader | None = None):
        self.config = config or get_config()

    def build_url(self) -> str:
        return build_recognize_url(
            self.config.service_url,
            model=self.config.model,
            customization_id=self.config.customization_id,
            learning_opt_out=self.config.learning_opt_out,
        )

    def build_headers(self) -> dict[str, str]:
        headers = {}
        token = self.config.access_token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    def build_ssl_context(self) -> ssl.SSLContext | None:
        if self.config.verify_ssl:
            return None
        logger.warning("TLS certificate verification is disabled")
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    def transport_factory(self) -> SocketFactory:
        """Return a factory producing a fresh WebSocketTransport per connection attempt."""
        url = self.build_url()
        headers = self.build_headers()
        ssl_context = self.build_ssl_context()
        open_timeout = self.config.open_timeout

        def factory(listener: SocketListener) -> WebSocketTransport:
            return WebSocketTransport(
                url, listener, headers=headers, open_timeout=open_timeout, ssl_context=ssl_context
            )

        return factory

    def default_settings(self, **overrides) -> RecognitionSettings:
        """Settings for the configured audio format, with keyword overrides applied."""
        overrides.setdefault("content_type", self.config.audio_content_type)
        return RecognitionSettings(**overrides)

    def create_session(
        self,
        on_result: ResultCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_closed=None,
        on_listening=None,
        socket_factory: SocketFactory | None = None,
    ) -> StreamingSession:
        return StreamingSession(
            socket_factory=socket_factory or self.transport_factory(),
            on_result=on_result,
            on_failure=on_failure,
            on_closed=on_closed,
            on_listening=on_listening,
            max_reconnect_attempts=self.config.max_reconnect_attempts,
            transient_close_codes=self.config.transient_close_codes,
            max_pending_chunks=self.config.max_pending_chunks,
        )

    def transcribe_source(
        self,
        source: AudioSource,
        settings: RecognitionSettings | None = None,
        timeout: float = 60.0,
        socket_factory: SocketFactory | None = None,
    ) -> StreamingSession:
        """Stream a finite source to completion and return the finished session.

        Raises:
            TimeoutError: The session did not finish within ``timeout`` seconds
            AudioDroppedError: Audio was dropped while connecting, so the transcript is incomplete
            RecognitionError: The session failed

        """
        session = self.create_session(socket_factory=socket_factory)
        session.start(settings or self.default_settings(), audio_source=source)

        if not session.wait(timeout):
            session.cancel()
            session.wait(5.0)
            raise TimeoutError(f"Transcription did not finish within {timeout}s")

        if session.error is not None:
            raise session.error
        if session.chunks_dropped:
            raise AudioDroppedError(session.chunks_dropped)
        logger.info(f"Transcription finished: {session.chunks_sent} chunks, {session.bytes_sent} bytes sent")
        return session

    def transcribe_bytes(
        self,
        data: bytes,
        settings: RecognitionSettings | None = None,
        timeout: float = 60.0,
        chunk_size: int | None = None,
        socket_factory: SocketFactory | None = None,
    ) -> str:
        """Transcribe an in-memory buffer and return the best transcript."""
        source = BufferAudioSource(data, chunk_size=chunk_size or self.config.audio_chunk_bytes)
        session = self.transcribe_source(source, settings=settings, timeout=timeout, socket_factory=socket_factory)
        return session.transcript

    def transcribe_file(
        self,
        path: str | Path,
        settings: RecognitionSettings | None = None,
        timeout: float = 60.0,
        chunk_size: int | None = None,
        socket_factory: SocketFactory | None = None,
    ) -> str:
        """Transcribe an audio file; its bytes are streamed as-is."""
        source = BufferAudioSource.from_file(path, chunk_size=chunk_size or self.config.audio_chunk_bytes)
        session = self.transcribe_source(source, settings=settings, timeout=timeout, socket_factory=socket_factory)
        return session.transcript

    def microphone_source(self, compress: bool | None = None) -> MicrophoneAudioSource:
        """Build a microphone source from the ``[scribe.audio]`` settings."""
        return MicrophoneAudioSource.from_config(self.config, compress=compress)

    def stream_microphone(
        self,
        on_result: ResultCallback | None = None,
        on_failure: FailureCallback | None = None,
        on_closed=None,
        compress: bool | None = None,
        socket_factory: SocketFactory | None = None,
        **settings_overrides,
    ) -> StreamingSession:
        """Start streaming the default microphone; stop it with ``session.stop()``.

        The start frame's content type follows the source, so compressed
        capture is announced as Ogg/Opus.
        """
        source = self.microphone_source(compress=compress)
        settings_overrides.setdefault("content_type", source.content_type)
        session = self.create_session(
            on_result=on_result, on_failure=on_failure, on_closed=on_closed, socket_factory=socket_factory
        )
        session.start(self.default_settings(**settings_overrides), audio_source=source)
        return session
