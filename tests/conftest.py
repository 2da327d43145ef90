"""Shared fixtures: an in-memory socket that records everything written to it."""

import os
import sys
import tempfile
from types import SimpleNamespace

import pytest

# Keep test runs from writing into ~/.matilda/logs
os.environ.setdefault("MATILDA_LOG_DIR", tempfile.mkdtemp(prefix="matilda-scribe-logs-"))

from matilda_scribe.recognition.exceptions import NotConnectedError  # noqa: E402


class FakeSocket:
    """TransportSocket double driven by the test instead of the network."""

    def __init__(self, listener):
        self.listener = listener
        self.log = []
        self.is_open = False
        self.connect_calls = 0
        self.disconnect_calls = 0

    def connect(self):
        self.connect_calls += 1

    def disconnect(self):
        self.disconnect_calls += 1
        self.is_open = False
        self.log.append(("disconnect", None))

    def send_text(self, text):
        if not self.is_open:
            raise NotConnectedError("Socket is not open")
        self.log.append(("text", text))

    def send_binary(self, data):
        if not self.is_open:
            raise NotConnectedError("Socket is not open")
        self.log.append(("binary", bytes(data)))

    # Test controls

    def open(self):
        self.is_open = True
        self.listener.on_open()

    def receive(self, text):
        self.listener.on_text_message(text)

    def close(self, error=None):
        self.is_open = False
        self.listener.on_close(error)

    @property
    def writes(self):
        return [entry for entry in self.log if entry[0] in ("text", "binary")]

    def texts(self):
        return [payload for kind, payload in self.log if kind == "text"]

    def binaries(self):
        return [payload for kind, payload in self.log if kind == "binary"]


class SocketFactory:
    """Builds FakeSockets and remembers every one it built."""

    def __init__(self):
        self.sockets = []

    def __call__(self, listener):
        socket = FakeSocket(listener)
        self.sockets.append(socket)
        return socket

    @property
    def last(self):
        return self.sockets[-1]


@pytest.fixture
def socket_factory():
    return SocketFactory()


class Recorder:
    """Collects session callbacks."""

    def __init__(self):
        self.results = []
        self.failures = []
        self.closed = 0
        self.listening = 0

    def on_result(self, result):
        self.results.append(result)

    def on_failure(self, error):
        self.failures.append(error)

    def on_closed(self):
        self.closed += 1

    def on_listening(self):
        self.listening += 1


@pytest.fixture
def recorder():
    return Recorder()


class FakeStream:
    def __init__(self, callback):
        self.callback = callback
        self.started = False
        self.closed = False

    def start_stream(self):
        self.started = True

    def stop_stream(self):
        self.started = False

    def close(self):
        self.closed = True


class FakePyAudio:
    """Stands in for the pyaudio module; opened streams are driven by the test."""

    paInt16 = 8
    paContinue = 0

    def __init__(self):
        self.streams = []
        self.terminated = False

    def PyAudio(self):
        return self

    def open(self, **kwargs):
        self.open_kwargs = kwargs
        stream = FakeStream(kwargs["stream_callback"])
        self.streams.append(stream)
        return stream

    def terminate(self):
        self.terminated = True


@pytest.fixture
def fake_pyaudio(monkeypatch):
    fake = FakePyAudio()
    monkeypatch.setitem(sys.modules, "pyaudio", fake)
    return fake


class FakeOpusEncoder:
    """Stands in for opuslib.Encoder; packet N is b"opusN"."""

    def __init__(self, fs, channels, application):
        self.args = (fs, channels, application)
        self.frames = []

    def encode(self, pcm, frame_size):
        self.frames.append((pcm, frame_size))
        return b"opus%d" % len(self.frames)


@pytest.fixture
def fake_opuslib(monkeypatch):
    module = SimpleNamespace(Encoder=FakeOpusEncoder)
    monkeypatch.setitem(sys.modules, "opuslib", module)
    return module
