"""Audio container/codec negotiation and encoding."""

import io
import logging
from dataclasses import dataclass
from typing import Sequence

import numpy as np
import soundfile as sf

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioEncoding:
    """A libsndfile container/subtype pair and how to label it."""
    mime_type: str
    container: str
    subtype: str
    extension: str
    sample_rates: tuple = ()  # empty means any rate


OPUS = AudioEncoding("audio/ogg;codecs=opus", "OGG", "OPUS", ".ogg",
                     sample_rates=(8000, 12000, 16000, 24000, 48000))
WAV = AudioEncoding("audio/wav", "WAV", "PCM_16", ".wav")

PREFERRED_ENCODINGS = (OPUS,)
FALLBACK_ENCODING = WAV


def is_encoding_supported(encoding: AudioEncoding, sample_rate: int) -> bool:
    """True when libsndfile can write this encoding at this sample rate."""
    if encoding.sample_rates and sample_rate not in encoding.sample_rates:
        return False
    return sf.check_format(encoding.container, encoding.subtype)


def negotiate_encoding(
    sample_rate: int,
    preferred: Sequence[AudioEncoding] = PREFERRED_ENCODINGS,
    fallback: AudioEncoding = FALLBACK_ENCODING,
) -> AudioEncoding:
    """Pick the first supported preferred encoding, else the generic container."""
    for encoding in preferred:
        if is_encoding_supported(encoding, sample_rate):
            logger.debug(f"Using {encoding.mime_type} at {sample_rate}Hz")
            return encoding
        logger.info(f"{encoding.mime_type} not supported at {sample_rate}Hz, trying next")
    logger.info(f"Falling back to {fallback.mime_type}")
    return fallback


def encode_pcm(pcm: bytes, sample_rate: int, channels: int, encoding: AudioEncoding) -> bytes:
    """Encode 16-bit interleaved PCM into the given container."""
    if not pcm:
        return b""
    samples = np.frombuffer(pcm, dtype=np.int16).reshape(-1, channels)
    buffer = io.BytesIO()
    sf.write(buffer, samples, sample_rate, format=encoding.container, subtype=encoding.subtype)
    return buffer.getvalue()
