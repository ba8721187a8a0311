"""Data models for the creatorstudio capture core."""

from .audio import AudioChunk, AudioBlob, AudioStats
from .checkpoint import CheckpointRecord
from .events import SessionEvent
from .session import SessionState, RecordingSession, RecordingResult, SessionInfo
from .transcription import (
    RecognitionAlternative,
    RecognitionResult,
    RecognitionEvent,
    RecognitionErrorEvent,
    TranscriptState,
)

__all__ = [
    "AudioChunk",
    "AudioBlob",
    "AudioStats",
    "CheckpointRecord",
    "SessionEvent",
    "SessionState",
    "RecordingSession",
    "RecordingResult",
    "SessionInfo",
    # Recognition models
    "RecognitionAlternative",
    "RecognitionResult",
    "RecognitionEvent",
    "RecognitionErrorEvent",
    "TranscriptState",
]
