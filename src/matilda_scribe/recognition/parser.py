"""Decoding of inbound text frames.

The remote endpoint sends three kinds of JSON text frames:

- ``{"state": "listening"}``: handshake acknowledgment
- ``{"error": "..."}``: a service-side error
- ``{"results": [...], "result_index": n}``: transcription results

Anything else raises MalformedResponse; the session logs and drops it.
"""

import json
from types import MappingProxyType
from typing import Any

from .exceptions import MalformedResponse
from .types import (
    Alternative,
    KeywordMatch,
    ListeningAck,
    ResultsFrame,
    ServiceErrorMessage,
    SpeakerLabel,
    TranscriptionResult,
    WordAlternativeSet,
    WordConfidence,
    WordHypothesis,
    WordTimestamp,
)

InboundMessage = ListeningAck | ServiceErrorMessage | ResultsFrame


def _number(value: Any, what: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedResponse(f"{what} must be a number, got {value!r}")
    return float(value)


def _probability(value: Any, what: str) -> float:
    number = _number(value, what)
    if not 0.0 <= number <= 1.0:
        raise MalformedResponse(f"{what} out of range: {number}")
    return number


def _text(value: Any, what: str) -> str:
    if not isinstance(value, str):
        raise MalformedResponse(f"{what} must be a string, got {value!r}")
    return value


def _list(value: Any, what: str) -> list:
    if not isinstance(value, list):
        raise MalformedResponse(f"{what} must be a list, got {type(value).__name__}")
    return value


def _span(start: Any, end: Any, what: str) -> tuple[float, float]:
    start_time = _number(start, f"{what} start time")
    end_time = _number(end, f"{what} end time")
    if end_time < start_time:
        raise MalformedResponse(f"{what} ends before it starts ({start_time} > {end_time})")
    return start_time, end_time


def _parse_timestamp(entry: Any) -> WordTimestamp:
    entry = _list(entry, "timestamp")
    if len(entry) != 3:
        raise MalformedResponse(f"timestamp must be [word, start, end], got {entry!r}")
    start_time, end_time = _span(entry[1], entry[2], "timestamp")
    return WordTimestamp(word=_text(entry[0], "timestamp word"), start_time=start_time, end_time=end_time)


def _parse_word_confidence(entry: Any) -> WordConfidence:
    entry = _list(entry, "word_confidence")
    if len(entry) != 2:
        raise MalformedResponse(f"word_confidence must be [word, confidence], got {entry!r}")
    return WordConfidence(
        word=_text(entry[0], "word_confidence word"),
        confidence=_probability(entry[1], "word confidence"),
    )


def _parse_alternative(data: Any) -> Alternative:
    if not isinstance(data, dict):
        raise MalformedResponse("alternative must be an object")
    if "transcript" not in data:
        raise MalformedResponse("alternative is missing 'transcript'")

    confidence = data.get("confidence")
    timestamps = data.get("timestamps")
    word_confidence = data.get("word_confidence")
    return Alternative(
        transcript=_text(data["transcript"], "transcript"),
        confidence=None if confidence is None else _probability(confidence, "alternative confidence"),
        timestamps=None if timestamps is None else tuple(_parse_timestamp(t) for t in _list(timestamps, "timestamps")),
        word_confidence=(
            None
            if word_confidence is None
            else tuple(_parse_word_confidence(w) for w in _list(word_confidence, "word_confidence"))
        ),
    )


def _parse_keyword_results(data: Any) -> MappingProxyType:
    if not isinstance(data, dict):
        raise MalformedResponse("keywords_result must be an object")

    matches: dict[str, tuple[KeywordMatch, ...]] = {}
    for keyword, entries in data.items():
        parsed = []
        for entry in _list(entries, f"keyword '{keyword}' matches"):
            if not isinstance(entry, dict):
                raise MalformedResponse(f"keyword '{keyword}' match must be an object")
            start_time, end_time = _span(entry.get("start_time"), entry.get("end_time"), f"keyword '{keyword}'")
            parsed.append(
                KeywordMatch(
                    normalized_text=_text(entry.get("normalized_text"), "normalized_text"),
                    start_time=start_time,
                    end_time=end_time,
                    confidence=_probability(entry.get("confidence"), f"keyword '{keyword}' confidence"),
                )
            )
        matches[keyword] = tuple(parsed)
    return MappingProxyType(matches)


def _parse_word_alternatives(data: Any) -> tuple[WordAlternativeSet, ...]:
    sets = []
    for entry in _list(data, "word_alternatives"):
        if not isinstance(entry, dict):
            raise MalformedResponse("word alternative set must be an object")
        start_time, end_time = _span(entry.get("start_time"), entry.get("end_time"), "word alternative set")
        hypotheses = tuple(
            WordHypothesis(
                word=_text(h.get("word") if isinstance(h, dict) else None, "word hypothesis"),
                confidence=_probability(h.get("confidence"), "word hypothesis confidence"),
            )
            for h in _list(entry.get("alternatives", []), "word hypotheses")
        )
        sets.append(WordAlternativeSet(start_time=start_time, end_time=end_time, alternatives=hypotheses))
    return tuple(sets)


def parse_result(data: Any) -> TranscriptionResult:
    """Build a TranscriptionResult from one element of a frame's ``results``."""
    if not isinstance(data, dict):
        raise MalformedResponse("result must be an object")
    if not isinstance(data.get("final"), bool):
        raise MalformedResponse("result is missing boolean 'final'")
    if "alternatives" not in data:
        raise MalformedResponse("result is missing 'alternatives'")

    keywords = data.get("keywords_result")
    word_alternatives = data.get("word_alternatives")
    return TranscriptionResult(
        final=data["final"],
        alternatives=tuple(_parse_alternative(a) for a in _list(data["alternatives"], "alternatives")),
        keyword_results=None if keywords is None else _parse_keyword_results(keywords),
        word_alternatives=None if word_alternatives is None else _parse_word_alternatives(word_alternatives),
    )


def _parse_speaker_label(data: Any) -> SpeakerLabel:
    if not isinstance(data, dict):
        raise MalformedResponse("speaker label must be an object")
    from_time, to_time = _span(data.get("from"), data.get("to"), "speaker label")
    speaker = data.get("speaker")
    if isinstance(speaker, bool) or not isinstance(speaker, int):
        raise MalformedResponse(f"speaker must be an integer, got {speaker!r}")
    return SpeakerLabel(
        from_time=from_time,
        to_time=to_time,
        speaker=speaker,
        confidence=_probability(data.get("confidence"), "speaker confidence"),
        final=bool(data.get("final", False)),
    )


def parse_message(text: str) -> InboundMessage:
    """Decode one inbound text frame.

    Raises:
        MalformedResponse: the frame is not JSON or does not match a known shape

    """
    try:
        data = json.loads(text)
    except (ValueError, TypeError, RecursionError) as e:
        raise MalformedResponse(f"Invalid JSON received: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse(f"Expected a JSON object, got {type(data).__name__}")

    if "state" in data:
        if data["state"] == "listening":
            return ListeningAck()
        raise MalformedResponse(f"Unknown state message: {data['state']!r}")

    if "error" in data:
        return ServiceErrorMessage(error=str(data["error"]))

    if "results" not in data:
        raise MalformedResponse(f"Unrecognized message keys: {sorted(data)}")

    result_index = data.get("result_index", 0)
    if isinstance(result_index, bool) or not isinstance(result_index, int) or result_index < 0:
        raise MalformedResponse(f"Invalid result_index: {result_index!r}")

    return ResultsFrame(
        result_index=result_index,
        results=tuple(parse_result(r) for r in _list(data["results"], "results")),
        speaker_labels=tuple(_parse_speaker_label(s) for s in _list(data.get("speaker_labels", []), "speaker_labels")),
    )
