"""Type definitions for streaming recognition.

Provides:
- SessionState: Lifecycle state of a streaming session
- TranscriptionResult: One incremental or final recognition event
- Alternative, WordTimestamp, WordConfidence: Per-transcript details
- KeywordMatch, WordAlternativeSet, WordHypothesis: Spotting and hypotheses
- SpeakerLabel, ResultsFrame, ListeningAck, ServiceErrorMessage: Inbound frames
"""

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum


class SessionState(Enum):
    """State of a streaming session."""

    IDLE = "idle"
    CONNECTING = "connecting"
    LISTENING = "listening"
    STOPPING = "stopping"
    CLOSED = "closed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionState.CLOSED, SessionState.FAILED)


@dataclass(frozen=True)
class WordTimestamp:
    """A word with its start and end time in seconds from the start of the audio."""

    word: str
    start_time: float
    end_time: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class WordConfidence:
    word: str
    confidence: float


@dataclass(frozen=True)
class KeywordMatch:
    """A spotted keyword occurrence."""

    normalized_text: str
    start_time: float
    end_time: float
    confidence: float


@dataclass(frozen=True)
class WordHypothesis:
    word: str
    confidence: float


@dataclass(frozen=True)
class WordAlternativeSet:
    """Competing word hypotheses for one time span."""

    start_time: float
    end_time: float
    alternatives: tuple[WordHypothesis, ...] = ()


@dataclass(frozen=True)
class Alternative:
    """One candidate transcript.

    ``confidence`` is only reported for the best alternative of a final result.
    """

    transcript: str
    confidence: float | None = None
    timestamps: tuple[WordTimestamp, ...] | None = None
    word_confidence: tuple[WordConfidence, ...] | None = None


@dataclass(frozen=True)
class TranscriptionResult:
    """One incremental or final recognition event.

    Alternatives are ordered best-first.
    """

    final: bool
    alternatives: tuple[Alternative, ...]
    keyword_results: Mapping[str, tuple[KeywordMatch, ...]] | None = None
    word_alternatives: tuple[WordAlternativeSet, ...] | None = None

    @property
    def transcript(self) -> str:
        """Transcript of the best alternative, or an empty string."""
        return self.alternatives[0].transcript if self.alternatives else ""

    @property
    def confidence(self) -> float | None:
        return self.alternatives[0].confidence if self.alternatives else None


@dataclass(frozen=True)
class SpeakerLabel:
    from_time: float
    to_time: float
    speaker: int
    confidence: float
    final: bool = False


@dataclass(frozen=True)
class ResultsFrame:
    """A decoded results message.

    ``result_index`` is the position of ``results[0]`` in the session-wide
    list of results; later frames revise results from that index onward.
    """

    result_index: int
    results: tuple[TranscriptionResult, ...]
    speaker_labels: tuple[SpeakerLabel, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ListeningAck:
    """The ``{"state": "listening"}`` handshake acknowledgment."""

    state: str = "listening"


@dataclass(frozen=True)
class ServiceErrorMessage:
    """An ``{"error": "..."}`` message from the remote endpoint."""

    error: str
