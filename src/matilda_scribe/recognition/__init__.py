"""Streaming recognition APIs.

Public surface is kept explicit to reduce accidental coupling to internals.
"""

from .accumulator import ResultsAccumulator
from .client import RecognitionClient
from .exceptions import (
    AudioDroppedError,
    FatalDisconnect,
    InvalidSettingsError,
    MalformedResponse,
    NotConnectedError,
    RecognitionError,
    RecognitionServiceError,
    SocketClosedError,
    TranscriptionConnectionError,
    TransientDisconnect,
)
from .parser import parse_message, parse_result
from .protocol import build_recognize_url, encode_keep_alive, encode_start, encode_stop
from .session import StreamingSession
from .settings import RecognitionSettings
from .transport import SocketFactory, SocketListener, TransportSocket, WebSocketTransport
from .types import (
    Alternative,
    KeywordMatch,
    ListeningAck,
    ResultsFrame,
    ServiceErrorMessage,
    SessionState,
    SpeakerLabel,
    TranscriptionResult,
    WordAlternativeSet,
    WordConfidence,
    WordHypothesis,
    WordTimestamp,
)

__all__ = [
    "Alternative",
    "AudioDroppedError",
    "FatalDisconnect",
    "InvalidSettingsError",
    "KeywordMatch",
    "ListeningAck",
    "MalformedResponse",
    "NotConnectedError",
    "RecognitionClient",
    "RecognitionError",
    "RecognitionServiceError",
    "RecognitionSettings",
    "ResultsAccumulator",
    "ResultsFrame",
    "ServiceErrorMessage",
    "SessionState",
    "SocketClosedError",
    "SocketFactory",
    "SocketListener",
    "SpeakerLabel",
    "StreamingSession",
    "TranscriptionConnectionError",
    "TranscriptionResult",
    "TransientDisconnect",
    "TransportSocket",
    "WebSocketTransport",
    "WordAlternativeSet",
    "WordConfidence",
    "WordHypothesis",
    "WordTimestamp",
    "build_recognize_url",
    "encode_keep_alive",
    "encode_start",
    "encode_stop",
    "parse_message",
    "parse_result",
]
