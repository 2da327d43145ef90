#!/usr/bin/env python3
"""Audio capture sources feeding a streaming session.

A source pushes raw audio chunks through a synchronous callback on its own
capture thread. Chunk size and cadence belong to the source; the session
forwards whatever it receives.
"""

import threading
import time
from collections.abc import Callable
from pathlib import Path
from typing import Protocol

from ..core.config import setup_logging
from .opus import OGG_OPUS_CONTENT_TYPE, OggOpusEncoder

logger = setup_logging(__name__)

ChunkCallback = Callable[[bytes], None]
CompleteCallback = Callable[[], None]


class AudioSource(Protocol):
    """Producer of raw audio chunks.

    ``live`` sources capture in real time and cannot wait; finite sources
    may be blocked by the consumer until it can take more audio.
    """

    live: bool

    def start(self, on_chunk: ChunkCallback, on_complete: CompleteCallback | None = None) -> None: ...

    def stop(self) -> None: ...


class BufferAudioSource:
    """Replay a static buffer (e.g. the contents of an audio file) as chunks.

    With ``bytes_per_second`` set, chunks are paced to real time; otherwise
    they are delivered as fast as the callback accepts them.
    """

    live = False

    def __init__(self, data: bytes, chunk_size: int = 3200, bytes_per_second: int | None = None):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.data = bytes(data)
        self.chunk_size = chunk_size
        self.bytes_per_second = bytes_per_second
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @classmethod
    def from_file(cls, path: str | Path, chunk_size: int = 3200, bytes_per_second: int | None = None) -> "BufferAudioSource":
        """Load an audio file; its bytes are streamed unchanged, headers included."""
        with open(path, "rb") as f:
            data = f.read()
        logger.info(f"Loaded {len(data)} bytes of audio from {path}")
        return cls(data, chunk_size=chunk_size, bytes_per_second=bytes_per_second)

    def chunks(self) -> list[bytes]:
        return [self.data[i : i + self.chunk_size] for i in range(0, len(self.data), self.chunk_size)]

    def start(self, on_chunk: ChunkCallback, on_complete: CompleteCallback | None = None) -> None:
        if self._thread is not None:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._pump, args=(on_chunk, on_complete), name="scribe-buffer-source", daemon=True
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=2.0)

    def _pump(self, on_chunk: ChunkCallback, on_complete: CompleteCallback | None) -> None:
        delay = self.chunk_size / self.bytes_per_second if self.bytes_per_second else 0.0
        sent = 0
        for chunk in self.chunks():
            if self._stop_event.is_set():
                logger.debug(f"Buffer source stopped after {sent} chunks")
                return
            try:
                on_chunk(chunk)
            except Exception as e:
                logger.error(f"Error in audio chunk callback: {e}")
                return
            sent += 1
            if delay:
                self._stop_event.wait(delay)

        logger.debug(f"Buffer source delivered {sent} chunks")
        if on_complete is not None and not self._stop_event.is_set():
            try:
                on_complete()
            except Exception as e:
                logger.error(f"Error in audio completion callback: {e}")


class MicrophoneAudioSource:
    """Capture 16-bit PCM from the default input device using PyAudio.

    PyAudio delivers each buffer on its own callback thread. With
    ``compress`` set, buffers are Opus-encoded into an Ogg stream before
    delivery and the final page is delivered by ``stop``.
    """

    live = True

    def __init__(self, sample_rate: int = 16000, channels: int = 1, chunk_ms: int = 100, compress: bool = False):
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.compress = compress
        self.frames_per_buffer = sample_rate * chunk_ms // 1000
        self._pyaudio = None
        self._stream = None
        self._encoder: OggOpusEncoder | None = None
        self._on_chunk: ChunkCallback | None = None
        self.is_recording = False
        self.chunks_captured = 0
        self.recording_start_time: float | None = None

    @classmethod
    def from_config(cls, config=None, compress: bool | None = None) -> "MicrophoneAudioSource":
        if config is None:
            from ..core.config import get_config

            config = get_config()
        return cls(
            sample_rate=config.audio_sample_rate,
            channels=config.audio_channels,
            chunk_ms=config.audio_chunk_ms,
            compress=config.audio_compress if compress is None else compress,
        )

    @property
    def content_type(self) -> str:
        """Content type announced in the start frame for this source's output."""
        if self.compress:
            return OGG_OPUS_CONTENT_TYPE
        if self.channels > 1:
            return f"audio/l16;rate={self.sample_rate};channels={self.channels}"
        return f"audio/l16;rate={self.sample_rate}"

    def start(self, on_chunk: ChunkCallback, on_complete: CompleteCallback | None = None) -> None:
        if self.is_recording:
            return

        try:
            import pyaudio
        except ImportError as e:
            raise RuntimeError(
                "Microphone capture requires PyAudio: pip install 'goobits-matilda-scribe[microphone]'"
            ) from e

        self._encoder = OggOpusEncoder(self.sample_rate, self.channels) if self.compress else None
        self._on_chunk = on_chunk

        def _callback(in_data, frame_count, time_info, status):
            if status:
                logger.debug(f"PyAudio status flags: {status}")
            if in_data:
                self.chunks_captured += 1
                try:
                    self._deliver(self._encoder.encode(in_data) if self._encoder else in_data)
                except Exception as e:
                    logger.error(f"Error in audio chunk callback: {e}")
            return (None, pyaudio.paContinue)

        self._pyaudio = pyaudio.PyAudio()
        self._stream = self._pyaudio.open(
            format=pyaudio.paInt16,
            channels=self.channels,
            rate=self.sample_rate,
            input=True,
            frames_per_buffer=self.frames_per_buffer,
            stream_callback=_callback,
        )
        self.is_recording = True
        self.chunks_captured = 0
        self.recording_start_time = time.time()
        self._stream.start_stream()
        logger.info(f"Microphone capture started: {self.sample_rate}Hz, {self.channels}ch, {self.chunk_ms}ms chunks")

    def stop(self) -> None:
        if not self.is_recording:
            return
        self.is_recording = False

        if self._stream is not None:
            self._stream.stop_stream()
            self._stream.close()
            self._stream = None
        if self._pyaudio is not None:
            self._pyaudio.terminate()
            self._pyaudio = None

        # The callback thread is done; close the Ogg stream with its final page
        if self._encoder is not None:
            try:
                self._deliver(self._encoder.endstream())
            except Exception as e:
                logger.error(f"Error delivering final Ogg/Opus page: {e}")
            self._encoder = None
        self._on_chunk = None

        duration = time.time() - (self.recording_start_time or time.time())
        logger.info(f"Microphone capture stopped after {duration:.2f}s ({self.chunks_captured} chunks)")

    def _deliver(self, data: bytes) -> None:
        if data and self._on_chunk is not None:
            self._on_chunk(data)
