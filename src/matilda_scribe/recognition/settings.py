"""Recognition request settings.

RecognitionSettings is the value object serialized into the start frame of a
streaming session. Any field left as ``None`` is omitted from the wire so the
remote endpoint applies its own default.
"""

from dataclasses import dataclass, fields

from .exceptions import InvalidSettingsError

# Field name -> wire key, in the order keys are written to the start frame
WIRE_NAMES: dict[str, str] = {
    "content_type": "content-type",
    "customization_weight": "customization_weight",
    "inactivity_timeout": "inactivity_timeout",
    "keywords": "keywords",
    "keywords_threshold": "keywords_threshold",
    "max_alternatives": "max_alternatives",
    "interim_results": "interim_results",
    "continuous": "continuous",
    "word_alternatives_threshold": "word_alternatives_threshold",
    "word_confidence": "word_confidence",
    "timestamps": "timestamps",
    "profanity_filter": "profanity_filter",
    "smart_formatting": "smart_formatting",
    "speaker_labels": "speaker_labels",
    "grammar_name": "grammar_name",
    "redaction": "redaction",
}


def _check_probability(name: str, value: float | None) -> None:
    if value is not None and not 0.0 <= value <= 1.0:
        raise InvalidSettingsError(f"{name} must be between 0 and 1, got {value}")


@dataclass(frozen=True)
class RecognitionSettings:
    """Settings for one streaming recognition request.

    Attributes:
        content_type: MIME type of the audio, e.g. ``audio/l16;rate=16000``
        customization_weight: Weight of the custom language model (0-1)
        inactivity_timeout: Seconds of silence before the remote closes; -1 is infinite
        keywords: Keywords to spot in the audio
        keywords_threshold: Minimum confidence for a keyword match (0-1)
        max_alternatives: Maximum number of alternative transcripts
        interim_results: Receive non-final results as well
        continuous: Keep recognizing across pauses instead of stopping at the first one
        word_alternatives_threshold: Minimum confidence for word hypotheses (0-1)
        word_confidence: Receive a confidence per word
        timestamps: Receive start/end times per word
        profanity_filter: Censor profanity in transcripts
        smart_formatting: Convert dates, numbers and similar to conventional form
        speaker_labels: Receive speaker labels
        grammar_name: Grammar of the custom language model to apply
        redaction: Mask numeric data in final transcripts

    """

    content_type: str | None = None
    customization_weight: float | None = None
    inactivity_timeout: int | None = None
    keywords: tuple[str, ...] | None = None
    keywords_threshold: float | None = None
    max_alternatives: int | None = None
    interim_results: bool | None = None
    continuous: bool | None = None
    word_alternatives_threshold: float | None = None
    word_confidence: bool | None = None
    timestamps: bool | None = None
    profanity_filter: bool | None = None
    smart_formatting: bool | None = None
    speaker_labels: bool | None = None
    grammar_name: str | None = None
    redaction: bool | None = None

    def __post_init__(self) -> None:
        if self.keywords is not None and not isinstance(self.keywords, tuple):
            object.__setattr__(self, "keywords", tuple(self.keywords))

        if self.keywords_threshold is not None and not self.keywords:
            raise InvalidSettingsError("keywords_threshold requires at least one keyword")
        _check_probability("keywords_threshold", self.keywords_threshold)
        _check_probability("word_alternatives_threshold", self.word_alternatives_threshold)
        _check_probability("customization_weight", self.customization_weight)

        if self.max_alternatives is not None and self.max_alternatives < 1:
            raise InvalidSettingsError(f"max_alternatives must be at least 1, got {self.max_alternatives}")
        if self.inactivity_timeout is not None and not (self.inactivity_timeout == -1 or self.inactivity_timeout > 0):
            raise InvalidSettingsError(f"inactivity_timeout must be -1 or positive, got {self.inactivity_timeout}")

    def to_wire(self) -> dict:
        """Return the set fields keyed by their wire names, in wire order."""
        wire = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            wire[WIRE_NAMES[f.name]] = list(value) if isinstance(value, tuple) else value
        return wire
