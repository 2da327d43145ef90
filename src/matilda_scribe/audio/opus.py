#!/usr/bin/env python3
"""Opus compression of 16-bit PCM into an Ogg stream.

The recognize endpoint accepts ``audio/ogg;codecs=opus``: Opus packets
carried in Ogg pages, preceded by the OpusHead and OpusTags header packets.
Each call to ``encode`` returns whole pages, so the output can be sent as
binary frames as soon as it is produced. ``endstream`` pads and encodes the
remaining samples and closes the stream.
"""

import random
import struct

from ..core.config import setup_logging

logger = setup_logging(__name__)

OGG_OPUS_CONTENT_TYPE = "audio/ogg;codecs=opus"
OPUS_SAMPLE_RATES = (8000, 12000, 16000, 24000, 48000)

# Ogg granule positions for Opus always count 48 kHz samples
GRANULE_RATE = 48000
MAX_SEGMENTS_PER_PAGE = 255

_HEADER_TYPE_BOS = 0x02
_HEADER_TYPE_EOS = 0x04

_PAGE_HEADER = struct.Struct("<4sBBqIIIB")


def _build_crc_table() -> list[int]:
    table = []
    for i in range(256):
        r = i << 24
        for _ in range(8):
            r = ((r << 1) ^ 0x04C11DB7) if r & 0x80000000 else (r << 1)
        table.append(r & 0xFFFFFFFF)
    return table


_CRC_TABLE = _build_crc_table()


def ogg_crc(data: bytes) -> int:
    """CRC-32 as used by Ogg: polynomial 0x04C11DB7, zero init, unreflected."""
    crc = 0
    for byte in data:
        crc = ((crc << 8) & 0xFFFFFFFF) ^ _CRC_TABLE[((crc >> 24) & 0xFF) ^ byte]
    return crc


def _lacing(packet: bytes) -> bytes:
    full, rest = divmod(len(packet), 255)
    return bytes([255] * full + [rest])


class OggPageWriter:
    """Packs packets into Ogg pages for one logical bitstream."""

    def __init__(self, serial: int | None = None):
        self.serial = random.getrandbits(32) if serial is None else serial
        self.sequence = 0
        self._started = False

    def pages(self, packets: list[tuple[bytes, int]], eos: bool = False) -> bytes:
        """Return pages holding ``packets``, given as ``(packet, granule_position)`` pairs.

        Packets never span pages; a page is closed when its lacing table is full.
        The last page is flagged end-of-stream when ``eos`` is set.
        """
        output = bytearray()
        batch: list[tuple[bytes, int]] = []
        segments = 0
        for packet, granule in packets:
            needed = len(packet) // 255 + 1
            if batch and segments + needed > MAX_SEGMENTS_PER_PAGE:
                output += self._page(batch, eos=False)
                batch, segments = [], 0
            batch.append((packet, granule))
            segments += needed
        if batch:
            output += self._page(batch, eos=eos)
        return bytes(output)

    def _page(self, batch: list[tuple[bytes, int]], eos: bool) -> bytes:
        header_type = 0
        if not self._started:
            header_type |= _HEADER_TYPE_BOS
            self._started = True
        if eos:
            header_type |= _HEADER_TYPE_EOS

        lacing = b"".join(_lacing(packet) for packet, _ in batch)
        body = b"".join(packet for packet, _ in batch)
        granule = batch[-1][1]
        header = _PAGE_HEADER.pack(b"OggS", 0, header_type, granule, self.serial, self.sequence, 0, len(lacing))
        page = bytearray(header + lacing + body)
        struct.pack_into("<I", page, 22, ogg_crc(page))
        self.sequence += 1
        return bytes(page)


def opus_head(channels: int, input_sample_rate: int, pre_skip: int = 0) -> bytes:
    """Identification header packet (version 1, channel mapping family 0)."""
    return b"OpusHead" + struct.pack("<BBHIhB", 1, channels, pre_skip, input_sample_rate, 0, 0)


def opus_tags(vendor: str = "matilda-scribe", comments: tuple[str, ...] = ("ENCODER=matilda-scribe",)) -> bytes:
    """Comment header packet."""
    vendor_bytes = vendor.encode("utf-8")
    data = bytearray(b"OpusTags")
    data += struct.pack("<I", len(vendor_bytes)) + vendor_bytes
    data += struct.pack("<I", len(comments))
    for comment in comments:
        encoded = comment.encode("utf-8")
        data += struct.pack("<I", len(encoded)) + encoded
    return bytes(data)


class OggOpusEncoder:
    """Incremental PCM to Ogg/Opus encoder built on opuslib.

    Example:
        encoder = OggOpusEncoder(sample_rate=16000, channels=1)
        stream = encoder.encode(pcm_bytes)
        stream += encoder.endstream()

    """

    content_type = OGG_OPUS_CONTENT_TYPE

    def __init__(self, sample_rate: int = 16000, channels: int = 1, frame_ms: int = 20, application: str = "voip"):
        """Initialize the encoder.

        Args:
            sample_rate: PCM sample rate; must be a rate Opus encodes natively
            channels: 1 or 2
            frame_ms: Duration of one Opus frame (2.5, 5, 10, 20, 40 or 60 ms)
            application: opuslib application, e.g. "voip" or "audio"

        Raises:
            ValueError: Unsupported sample rate or channel count
            RuntimeError: opuslib is not installed

        """
        if sample_rate not in OPUS_SAMPLE_RATES:
            raise ValueError(f"Opus cannot encode {sample_rate}Hz audio without resampling")
        if channels not in (1, 2):
            raise ValueError(f"Opus encoding supports 1 or 2 channels, got {channels}")

        try:
            import opuslib
        except ImportError as e:
            raise RuntimeError(
                "Opus compression requires opuslib: pip install 'goobits-matilda-scribe[compression]'"
            ) from e

        self.sample_rate = sample_rate
        self.channels = channels
        self.frame_size = sample_rate * frame_ms // 1000
        self.frame_bytes = self.frame_size * channels * 2
        self._encoder = opuslib.Encoder(sample_rate, channels, application)
        self._writer = OggPageWriter()
        self._pcm_cache = bytearray()
        self._granule = 0
        self._finished = False

        self.packets_encoded = 0
        self.bytes_encoded = 0

        # Header packets each sit on their own page, granule 0
        self._headers = self._writer.pages([(opus_head(channels, sample_rate), 0)])
        self._headers += self._writer.pages([(opus_tags(), 0)])

    def encode(self, pcm: bytes) -> bytes:
        """Encode whole frames of ``pcm`` and return the Ogg pages produced.

        Samples that do not fill a frame are cached for the next call. The
        header pages are prepended to the first output.
        """
        if self._finished:
            raise RuntimeError("Ogg/Opus stream already ended")

        self._pcm_cache += pcm
        packets = []
        while len(self._pcm_cache) >= self.frame_bytes:
            frame = bytes(self._pcm_cache[: self.frame_bytes])
            del self._pcm_cache[: self.frame_bytes]
            self._granule += self.frame_size * GRANULE_RATE // self.sample_rate
            packets.append((self._encode_frame(frame), self._granule))

        return self._take_headers() + self._writer.pages(packets)

    def endstream(self) -> bytes:
        """Flush the cached samples as a final, zero-padded frame and end the stream."""
        if self._finished:
            return b""
        self._finished = True

        samples = len(self._pcm_cache) // (2 * self.channels)
        self._granule += samples * GRANULE_RATE // self.sample_rate
        frame = bytes(self._pcm_cache) + b"\x00" * (self.frame_bytes - len(self._pcm_cache))
        self._pcm_cache.clear()

        output = self._take_headers() + self._writer.pages([(self._encode_frame(frame), self._granule)], eos=True)
        logger.debug(f"Ogg/Opus stream ended: {self.packets_encoded} packets, {self.bytes_encoded} bytes")
        return output

    def _encode_frame(self, frame: bytes) -> bytes:
        packet = self._encoder.encode(frame, self.frame_size)
        self.packets_encoded += 1
        self.bytes_encoded += len(packet)
        return packet

    def _take_headers(self) -> bytes:
        headers, self._headers = self._headers, b""
        return headers
