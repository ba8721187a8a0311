"""Audio-related data models."""

from dataclasses import dataclass


@dataclass
class AudioChunk:
    """One time-sliced fragment of recorded audio."""
    sequence: int
    data: bytes
    timestamp: float  # Unix timestamp when the slice was closed
    duration_seconds: float

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class AudioBlob:
    """The finalized recording: all chunks concatenated and encoded."""
    data: bytes
    mime_type: str
    chunk_count: int
    sample_rate: int
    channels: int
    duration_seconds: float

    @property
    def size(self) -> int:
        return len(self.data)


@dataclass
class AudioStats:
    """Recorder statistics."""
    state: str
    elapsed_seconds: float
    total_chunks: int
    buffered_bytes: int
    sample_rate: int
    mime_type: str
