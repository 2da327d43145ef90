"""Accumulation of results frames into a session-wide transcript."""

from .types import ResultsFrame, SpeakerLabel, TranscriptionResult


class ResultsAccumulator:
    """Merge results frames by ``result_index``.

    Each frame revises the session results starting at its ``result_index``:
    existing entries from that index on are replaced, and any extra results
    are appended. Speaker labels are collected in arrival order.

    Example:
        accumulator = ResultsAccumulator()
        accumulator.add(frame)
        print(accumulator.best_transcript)

    """

    def __init__(self) -> None:
        self._results: list[TranscriptionResult] = []
        self._speaker_labels: list[SpeakerLabel] = []

    def add(self, frame: ResultsFrame) -> None:
        index = min(frame.result_index, len(self._results))
        for offset, result in enumerate(frame.results):
            position = index + offset
            if position < len(self._results):
                self._results[position] = result
            else:
                self._results.append(result)
        self._speaker_labels.extend(frame.speaker_labels)

    def clear(self) -> None:
        self._results.clear()
        self._speaker_labels.clear()

    @property
    def results(self) -> tuple[TranscriptionResult, ...]:
        return tuple(self._results)

    @property
    def speaker_labels(self) -> tuple[SpeakerLabel, ...]:
        return tuple(self._speaker_labels)

    @property
    def is_final(self) -> bool:
        """True when every accumulated result is final."""
        return bool(self._results) and all(r.final for r in self._results)

    @property
    def best_transcript(self) -> str:
        """Concatenate the best transcript of every result."""
        return " ".join(r.transcript.strip() for r in self._results if r.transcript.strip())
