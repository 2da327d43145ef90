"""Unit tests for result accumulation."""

from matilda_scribe.recognition.accumulator import ResultsAccumulator
from matilda_scribe.recognition.types import Alternative, ResultsFrame, SpeakerLabel, TranscriptionResult


def result(text, final=False):
    return TranscriptionResult(final=final, alternatives=(Alternative(transcript=text),))


class TestResultsAccumulator:
    """Test merging frames by result index."""

    def test_empty(self):
        accumulator = ResultsAccumulator()
        assert accumulator.results == ()
        assert accumulator.best_transcript == ""
        assert not accumulator.is_final

    def test_revision_replaces_from_index(self):
        """Test that an interim result is replaced by its revision."""
        accumulator = ResultsAccumulator()
        accumulator.add(ResultsFrame(result_index=0, results=(result("hel"),)))
        accumulator.add(ResultsFrame(result_index=0, results=(result("hello", final=True),)))

        assert [r.transcript for r in accumulator.results] == ["hello"]
        assert accumulator.is_final

    def test_new_index_appends(self):
        accumulator = ResultsAccumulator()
        accumulator.add(ResultsFrame(result_index=0, results=(result("one ", final=True),)))
        accumulator.add(ResultsFrame(result_index=1, results=(result("two"),)))

        assert accumulator.best_transcript == "one two"
        assert not accumulator.is_final

    def test_frame_spanning_existing_and_new(self):
        accumulator = ResultsAccumulator()
        accumulator.add(ResultsFrame(result_index=0, results=(result("a"), result("b"))))
        accumulator.add(ResultsFrame(result_index=1, results=(result("B"), result("c"))))

        assert [r.transcript for r in accumulator.results] == ["a", "B", "c"]

    def test_index_past_end_appends(self):
        accumulator = ResultsAccumulator()
        accumulator.add(ResultsFrame(result_index=5, results=(result("late"),)))
        assert [r.transcript for r in accumulator.results] == ["late"]

    def test_blank_transcripts_skipped(self):
        accumulator = ResultsAccumulator()
        accumulator.add(ResultsFrame(result_index=0, results=(result("a"), result("  "), result("b"))))
        assert accumulator.best_transcript == "a b"

    def test_speaker_labels_and_clear(self):
        accumulator = ResultsAccumulator()
        label = SpeakerLabel(from_time=0.0, to_time=1.0, speaker=0, confidence=0.5)
        accumulator.add(ResultsFrame(result_index=0, results=(result("x"),), speaker_labels=(label,)))

        assert accumulator.speaker_labels == (label,)

        accumulator.clear()
        assert accumulator.results == ()
        assert accumulator.speaker_labels == ()
