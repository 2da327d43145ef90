#!/usr/bin/env python3
"""Custom exceptions for streaming recognition.

This module defines the exception hierarchy for recognition-related errors.
"""


class RecognitionError(Exception):
    """Base exception for recognition-related errors."""


class InvalidSettingsError(RecognitionError, ValueError):
    """Recognition settings violate a protocol constraint."""


class NotConnectedError(RecognitionError):
    """A frame was sent before the socket finished opening."""


class TranscriptionConnectionError(RecognitionError):
    """The socket failed to open (endpoint unreachable, TLS failure, timeout)."""


class SocketClosedError(RecognitionError):
    """The socket closed abnormally.

    Attributes:
        code: WebSocket close code, or the HTTP status of a failed upgrade
        reason: Close reason sent by the remote end, if any

    """

    def __init__(self, code: int | None, reason: str = ""):
        self.code = code
        self.reason = reason
        super().__init__(f"Socket closed (code={code}): {reason}" if reason else f"Socket closed (code={code})")


class TransientDisconnect(RecognitionError):
    """A close believed to be a recoverable handshake glitch."""

    def __init__(self, cause: SocketClosedError):
        self.cause = cause
        super().__init__(f"Transient disconnect: {cause}")


class FatalDisconnect(RecognitionError):
    """A non-retryable close, or a transient close with reconnects exhausted."""

    def __init__(self, cause: BaseException, attempts: int = 0):
        self.cause = cause
        self.attempts = attempts
        super().__init__(f"Fatal disconnect after {attempts} reconnect attempt(s): {cause}")


class MalformedResponse(RecognitionError):
    """An inbound frame could not be parsed. Never surfaced to callers."""


class RecognitionServiceError(RecognitionError):
    """The remote endpoint reported an error message (``{"error": ...}``)."""


class AudioDroppedError(RecognitionError):
    """Audio chunks were dropped before reaching the socket, so the transcript is incomplete."""

    def __init__(self, dropped: int):
        self.dropped = dropped
        super().__init__(f"{dropped} audio chunk(s) were dropped before reaching the socket")
