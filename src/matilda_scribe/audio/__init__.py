#!/usr/bin/env python3
"""Audio APIs for Matilda Scribe.

Public surface is kept explicit to reduce accidental coupling to internals.
"""

from .conversion import float32_to_int16, to_pcm16_bytes
from .opus import OggOpusEncoder
from .sources import AudioSource, BufferAudioSource, MicrophoneAudioSource

__all__ = [
    "AudioSource",
    "BufferAudioSource",
    "MicrophoneAudioSource",
    "OggOpusEncoder",
    "float32_to_int16",
    "to_pcm16_bytes",
]
