"""Session-related data models."""

import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Any

from .audio import AudioBlob


class SessionState(Enum):
    """Lifecycle of the session controller."""
    IDLE = "idle"
    RECORDING = "recording"
    PAUSED = "paused"
    FINALIZING = "finalizing"
    ERROR = "error"


@dataclass
class RecordingSession:
    """The single active recording, owned by the session controller."""
    session_id: str
    state: SessionState = SessionState.IDLE
    started_at: datetime = field(default_factory=datetime.now)
    duration: int = 0
    handle: Optional[Any] = None  # CaptureHandle while the device is held

    @classmethod
    def create(cls) -> "RecordingSession":
        return cls(session_id=f"recording_{int(time.time() * 1000)}")


@dataclass
class RecordingResult:
    """What stop() hands to the caller."""
    session_id: Optional[str]
    audio_blob: Optional[AudioBlob]
    transcript: str
    duration: int
    started_at: Optional[datetime] = None

    @classmethod
    def empty(cls) -> "RecordingResult":
        return cls(session_id=None, audio_blob=None, transcript="", duration=0)


@dataclass
class SessionInfo:
    """Information about a saved recording session."""
    session_id: str
    start_time: datetime
    duration_seconds: float
    audio_file: str
    mime_type: str
    file_size_bytes: int
    sample_rate: int
    total_chunks: int
    transcript_file: str
    transcript_chars: int
