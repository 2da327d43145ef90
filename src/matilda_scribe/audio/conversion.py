"""Audio conversion helpers for PCM frames sent on the wire."""

from typing import cast

import numpy as np


def float32_to_int16(audio: np.ndarray) -> np.ndarray:
    """Convert float PCM in [-1.0, 1.0] to int16."""
    if audio.dtype == np.int16:
        return audio
    audio_f32 = audio.astype(np.float32)
    return cast("np.ndarray", np.clip(audio_f32 * 32768.0, -32768, 32767).astype(np.int16))


def to_pcm16_bytes(chunk: bytes | bytearray | memoryview | np.ndarray) -> bytes:
    """Return a chunk as raw little-endian 16-bit PCM bytes.

    Byte-like chunks pass through unchanged. int16 arrays are serialized as-is
    and floating-point arrays are scaled from [-1.0, 1.0] first.

    Raises:
        ValueError: the array holds samples of any other dtype

    """
    if isinstance(chunk, np.ndarray):
        if chunk.dtype == np.int16:
            samples = chunk
        elif np.issubdtype(chunk.dtype, np.floating):
            samples = float32_to_int16(chunk)
        else:
            raise ValueError(f"Cannot convert {chunk.dtype} samples to 16-bit PCM; pass int16 or float audio")
        return samples.astype("<i2", copy=False).tobytes()
    return bytes(chunk)
