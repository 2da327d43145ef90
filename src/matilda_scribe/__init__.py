"""Matilda Scribe - Streaming speech recognition client over WebSockets."""

from importlib import import_module
from importlib import metadata
from pathlib import Path
import tomllib
from typing import TYPE_CHECKING


def _get_version() -> str:
    try:
        return metadata.version("goobits-matilda-scribe")
    except Exception:
        pass

    try:
        pyproject_path = Path(__file__).resolve().parents[2] / "pyproject.toml"
        with open(pyproject_path, "rb") as f:
            data = tomllib.load(f)
        return str(data["project"]["version"])
    except Exception:
        return "unknown"


__version__ = _get_version()

if TYPE_CHECKING:
    from .audio import BufferAudioSource, MicrophoneAudioSource
    from .core.config import ConfigLoader, get_config
    from .recognition import (
        RecognitionClient,
        RecognitionError,
        RecognitionSettings,
        SessionState,
        StreamingSession,
        TranscriptionResult,
        WebSocketTransport,
    )

_LAZY_EXPORTS = {
    "RecognitionClient": (".recognition", "RecognitionClient"),
    "RecognitionError": (".recognition", "RecognitionError"),
    "RecognitionSettings": (".recognition", "RecognitionSettings"),
    "SessionState": (".recognition", "SessionState"),
    "StreamingSession": (".recognition", "StreamingSession"),
    "TranscriptionResult": (".recognition", "TranscriptionResult"),
    "WebSocketTransport": (".recognition", "WebSocketTransport"),
    "BufferAudioSource": (".audio", "BufferAudioSource"),
    "MicrophoneAudioSource": (".audio", "MicrophoneAudioSource"),
    "ConfigLoader": (".core.config", "ConfigLoader"),
    "get_config": (".core.config", "get_config"),
}


def __getattr__(name):
    if name in {"audio", "core", "recognition"}:
        module = import_module(f".{name}", __name__)
        globals()[name] = module
        return module

    if name not in _LAZY_EXPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

    module_name, attr_name = _LAZY_EXPORTS[name]
    module = import_module(module_name, __name__)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


__all__ = [
    "RecognitionClient",
    "RecognitionError",
    "RecognitionSettings",
    "SessionState",
    "StreamingSession",
    "TranscriptionResult",
    "WebSocketTransport",
    "BufferAudioSource",
    "MicrophoneAudioSource",
    "ConfigLoader",
    "get_config",
    "__version__",
]
