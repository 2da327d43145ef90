"""Unit tests for RecognitionClient wiring and blocking helpers."""

import json
import queue
import ssl
import sys
import threading

import pytest

from matilda_scribe.core.config import ConfigLoader
from matilda_scribe.recognition.client import RecognitionClient
from matilda_scribe.recognition.exceptions import AudioDroppedError, RecognitionServiceError
from matilda_scribe.recognition.settings import RecognitionSettings
from matilda_scribe.recognition.transport import WebSocketTransport


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("SCRIBE_URL", "SCRIBE_MODEL", "SCRIBE_ACCESS_TOKEN"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        """
[scribe.service]
url = "wss://stt.example.com/api/v1/recognize"
model = "en-US_BroadbandModel"
access_token = "abc"
verify_ssl = false

[scribe.session]
max_reconnect_attempts = 2
transient_close_codes = [101, 1006]
max_pending_chunks = 8
"""
    )
    return ConfigLoader(path)


class ScriptedSocket:
    """Socket double that plays a remote endpoint on its own thread."""

    def __init__(self, listener, transcript="hello world", error=None):
        self.listener = listener
        self.transcript = transcript
        self.error = error
        self.sent = []
        self.is_open = False
        self._events = queue.Queue()
        self._thread = threading.Thread(target=self._deliver, daemon=True)

    def connect(self):
        self._thread.start()
        self._events.put(("open",))

    def disconnect(self):
        self._events.put(("close",))

    def send_text(self, text):
        self.sent.append(text)
        action = json.loads(text).get("action")
        if action == "start":
            self._events.put(("message", '{"state":"listening"}'))
        elif action == "stop":
            if self.error:
                self._events.put(("message", json.dumps({"error": self.error})))
                return
            result = {"final": True, "alternatives": [{"transcript": self.transcript, "confidence": 0.9}]}
            self._events.put(("message", json.dumps({"result_index": 0, "results": [result]})))
            self._events.put(("message", '{"state":"listening"}'))

    def send_binary(self, data):
        self.sent.append(bytes(data))

    def _deliver(self):
        while True:
            event = self._events.get()
            if event[0] == "open":
                self.is_open = True
                self.listener.on_open()
            elif event[0] == "message":
                self.listener.on_text_message(event[1])
            else:
                self.is_open = False
                self.listener.on_close(None)
                return


class SilentSocket:
    """Socket that never opens."""

    def __init__(self, listener):
        self.listener = listener
        self.disconnected = threading.Event()

    def connect(self):
        pass

    def disconnect(self):
        self.disconnected.set()
        self.listener.on_close(None)

    def send_text(self, text):
        raise AssertionError("never open")

    def send_binary(self, data):
        raise AssertionError("never open")


class TestClientWiring:
    """Test how configuration flows into transports and sessions."""

    def test_build_url(self, config):
        assert RecognitionClient(config).build_url() == (
            "wss://stt.example.com/api/v1/recognize?model=en-US_BroadbandModel"
        )

    def test_bearer_header(self, config):
        assert RecognitionClient(config).build_headers() == {"Authorization": "Bearer abc"}

    def test_no_header_without_token(self, tmp_path):
        client = RecognitionClient(ConfigLoader(tmp_path / "missing.toml"))
        assert client.build_headers() == {}
        assert client.build_ssl_context() is None

    def test_unverified_ssl_context(self, config):
        context = RecognitionClient(config).build_ssl_context()
        assert context.verify_mode == ssl.CERT_NONE
        assert context.check_hostname is False

    def test_transport_factory(self, config):
        factory = RecognitionClient(config).transport_factory()
        transport = factory(object())

        assert isinstance(transport, WebSocketTransport)
        assert transport.url.endswith("?model=en-US_BroadbandModel")
        assert transport.headers == {"Authorization": "Bearer abc"}
        assert transport.open_timeout == 10.0
        assert transport.ssl_context is not None

    def test_default_settings(self, config):
        client = RecognitionClient(config)
        assert client.default_settings() == RecognitionSettings(content_type="audio/l16;rate=16000")
        assert client.default_settings(content_type="audio/flac", timestamps=True) == RecognitionSettings(
            content_type="audio/flac", timestamps=True
        )

    def test_create_session_uses_policy(self, config):
        session = RecognitionClient(config).create_session(socket_factory=ScriptedSocket)

        assert session.max_reconnect_attempts == 2
        assert session.transient_close_codes == frozenset({101, 1006})
        assert session._pending.maxlen == 8


class TestTranscribe:
    """Test the blocking helpers end to end with a scripted endpoint."""

    def test_transcribe_bytes(self, config):
        sockets = []

        def factory(listener):
            sockets.append(ScriptedSocket(listener))
            return sockets[-1]

        transcript = RecognitionClient(config).transcribe_bytes(
            b"\x00\x01" * 10, chunk_size=8, timeout=5.0, socket_factory=factory
        )

        assert transcript == "hello world"
        sent = sockets[0].sent
        assert json.loads(sent[0]) == {"action": "start", "content-type": "audio/l16;rate=16000"}
        assert b"".join(frame for frame in sent if isinstance(frame, bytes)) == b"\x00\x01" * 10
        assert sent[-1] == '{"action":"stop"}'

    def test_transcribe_file(self, config, tmp_path):
        path = tmp_path / "clip.wav"
        path.write_bytes(b"RIFF" + b"\x00" * 40)

        transcript = RecognitionClient(config).transcribe_file(
            path,
            settings=RecognitionSettings(content_type="audio/wav"),
            timeout=5.0,
            socket_factory=lambda listener: ScriptedSocket(listener, transcript="from file"),
        )

        assert transcript == "from file"

    def test_service_error_is_raised(self, config):
        with pytest.raises(RecognitionServiceError, match="bad audio"):
            RecognitionClient(config).transcribe_bytes(
                b"\x00" * 4,
                timeout=5.0,
                socket_factory=lambda listener: ScriptedSocket(listener, error="bad audio"),
            )

    def test_timeout_cancels_session(self, config):
        sockets = []

        def factory(listener):
            sockets.append(SilentSocket(listener))
            return sockets[-1]

        with pytest.raises(TimeoutError):
            RecognitionClient(config).transcribe_bytes(b"\x00" * 4, timeout=0.2, socket_factory=factory)

        assert sockets[0].disconnected.is_set()

    def test_long_buffer_is_not_truncated(self, config):
        """Test that a buffer far longer than the pending limit is streamed whole."""
        sockets = []

        def factory(listener):
            sockets.append(ScriptedSocket(listener))
            return sockets[-1]

        data = bytes(range(256)) * 8
        client = RecognitionClient(config)
        assert client.config.max_pending_chunks == 8

        transcript = client.transcribe_bytes(data, chunk_size=16, timeout=5.0, socket_factory=factory)

        assert transcript == "hello world"
        frames = [frame for frame in sockets[0].sent if isinstance(frame, bytes)]
        assert len(frames) == 128
        assert b"".join(frames) == data

    def test_dropped_audio_is_an_error(self, config):
        """Test that a live source overflowing the pending buffer does not report success."""
        sockets = []

        def factory(listener):
            sockets.append(ManualOpenSocket(listener))
            return sockets[-1]

        class FloodingSource:
            live = True

            def start(self, on_chunk, on_complete=None):
                for i in range(20):
                    on_chunk(bytes([i, 0]))
                on_complete()
                sockets[0].open()

            def stop(self):
                pass

        client = RecognitionClient(config)
        with pytest.raises(AudioDroppedError) as excinfo:
            client.transcribe_source(FloodingSource(), timeout=5.0, socket_factory=factory)

        assert excinfo.value.dropped == 12
        frames = [frame for frame in sockets[0].sent if isinstance(frame, bytes)]
        assert frames == [bytes([i, 0]) for i in range(12, 20)]


class ManualOpenSocket(ScriptedSocket):
    """Scripted endpoint whose handshake completes only when the test says so."""

    def connect(self):
        self._thread.start()

    def open(self):
        self._events.put(("open",))


class TestStreamMicrophone:
    """Test live microphone sessions with a stand-in PyAudio."""

    def test_microphone_source_from_config(self, config):
        source = RecognitionClient(config).microphone_source()

        assert source.sample_rate == 16000
        assert source.chunk_ms == 100
        assert not source.compress

    def test_stream_raw_pcm(self, config, fake_pyaudio, socket_factory):
        session = RecognitionClient(config).stream_microphone(socket_factory=socket_factory, interim_results=True)
        socket = socket_factory.last
        socket.open()

        start = json.loads(socket.texts()[0])
        assert start["content-type"] == "audio/l16;rate=16000"
        assert start["interim_results"] is True

        fake_pyaudio.streams[0].callback(b"\x01\x00" * 4, 4, None, 0)
        assert socket.binaries() == [b"\x01\x00" * 4]

        session.stop()
        assert socket.texts()[-1] == '{"action":"stop"}'
        assert fake_pyaudio.streams[0].closed

    def test_stream_compressed(self, config, fake_pyaudio, fake_opuslib, socket_factory):
        """Test that compressed capture is announced as Ogg/Opus and ends with the final page."""
        session = RecognitionClient(config).stream_microphone(compress=True, socket_factory=socket_factory)
        socket = socket_factory.last
        socket.open()

        assert json.loads(socket.texts()[0])["content-type"] == "audio/ogg;codecs=opus"

        fake_pyaudio.streams[0].callback(b"\x00" * 700, 350, None, 0)
        assert socket.binaries()[0].startswith(b"OggS")

        session.stop()

        kinds = [kind for kind, _ in socket.writes]
        assert kinds[-2:] == ["binary", "text"]
        final_page = socket.binaries()[-1]
        assert final_page[5] & 0x04
        assert socket.texts()[-1] == '{"action":"stop"}'

    def test_failed_microphone_start_cancels_session(self, config, monkeypatch, socket_factory):
        monkeypatch.setitem(sys.modules, "pyaudio", None)

        with pytest.raises(RuntimeError, match="microphone"):
            RecognitionClient(config).stream_microphone(socket_factory=socket_factory)

        assert socket_factory.last.disconnect_calls == 1
