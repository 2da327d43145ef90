"""Unit tests for control frame encoding and endpoint URLs."""

import json

from matilda_scribe.recognition.protocol import (
    build_recognize_url,
    encode_keep_alive,
    encode_start,
    encode_stop,
)
from matilda_scribe.recognition.settings import RecognitionSettings


class TestEncodeStart:
    """Test the start frame."""

    def test_minimal_frame(self):
        """Test that unset fields are omitted."""
        frame = encode_start(RecognitionSettings(content_type="audio/l16", interim_results=True))
        assert frame == '{"action":"start","content-type":"audio/l16","interim_results":true}'

    def test_empty_settings(self):
        assert encode_start(RecognitionSettings()) == '{"action":"start"}'

    def test_equal_settings_encode_identically(self):
        """Test that encoding is deterministic for equal values."""
        a = RecognitionSettings(content_type="audio/flac", keywords=["alpha", "beta"], keywords_threshold=0.5)
        b = RecognitionSettings(content_type="audio/flac", keywords=("alpha", "beta"), keywords_threshold=0.5)

        assert a == b
        assert encode_start(a) == encode_start(b)
        assert encode_start(a) == encode_start(a)

    def test_action_is_first_key(self):
        frame = encode_start(RecognitionSettings(timestamps=True, content_type="audio/wav"))
        assert frame.startswith('{"action":"start",')

    def test_full_settings(self):
        """Test wire names and value types for every option."""
        settings = RecognitionSettings(
            content_type="audio/l16;rate=16000",
            customization_weight=0.3,
            inactivity_timeout=-1,
            keywords=("colorado",),
            keywords_threshold=0.6,
            max_alternatives=3,
            interim_results=False,
            continuous=True,
            word_alternatives_threshold=0.2,
            word_confidence=True,
            timestamps=True,
            profanity_filter=False,
            smart_formatting=True,
            speaker_labels=True,
            grammar_name="digits",
            redaction=True,
        )

        message = json.loads(encode_start(settings))

        assert message == {
            "action": "start",
            "content-type": "audio/l16;rate=16000",
            "customization_weight": 0.3,
            "inactivity_timeout": -1,
            "keywords": ["colorado"],
            "keywords_threshold": 0.6,
            "max_alternatives": 3,
            "interim_results": False,
            "continuous": True,
            "word_alternatives_threshold": 0.2,
            "word_confidence": True,
            "timestamps": True,
            "profanity_filter": False,
            "smart_formatting": True,
            "speaker_labels": True,
            "grammar_name": "digits",
            "redaction": True,
        }

    def test_non_ascii_keywords_kept(self):
        frame = encode_start(RecognitionSettings(keywords=("café",)))
        assert "café" in frame


class TestControlFrames:
    def test_stop_literal(self):
        assert encode_stop() == '{"action":"stop"}'
        assert encode_stop() == encode_stop()

    def test_keep_alive_literal(self):
        assert encode_keep_alive() == '{"action":"no-op"}'


class TestBuildRecognizeUrl:
    """Test endpoint URL construction."""

    def test_no_parameters(self):
        url = "wss://stt.example.com/speech-to-text/api/v1/recognize"
        assert build_recognize_url(url) == url

    def test_all_parameters(self):
        url = build_recognize_url(
            "wss://stt.example.com/api/v1/recognize",
            model="en-US_BroadbandModel",
            customization_id="abc-123",
            learning_opt_out=True,
        )
        assert url == (
            "wss://stt.example.com/api/v1/recognize"
            "?model=en-US_BroadbandModel&customization_id=abc-123&x-watson-learning-opt-out=true"
        )

    def test_learning_opt_out_false(self):
        url = build_recognize_url("ws://localhost:9000/recognize", learning_opt_out=False)
        assert url.endswith("?x-watson-learning-opt-out=false")

    def test_existing_query_replaced(self):
        url = build_recognize_url("ws://localhost/recognize?model=old", model="new")
        assert url == "ws://localhost/recognize?model=new"
