"""Audio capture and processing module."""

from .analyser import LevelAnalyser
from .capture import CaptureDevice, CaptureHandle
from .encoding import AudioEncoding, negotiate_encoding
from .processing import AudioConstraints, VoiceProcessor, VOICE_CONSTRAINTS
from .recorder import ChunkedRecorder, RecorderState

__all__ = [
    'LevelAnalyser',
    'CaptureDevice',
    'CaptureHandle',
    'AudioEncoding',
    'negotiate_encoding',
    'AudioConstraints',
    'VoiceProcessor',
    'VOICE_CONSTRAINTS',
    'ChunkedRecorder',
    'RecorderState',
]
