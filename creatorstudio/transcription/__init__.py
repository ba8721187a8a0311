"""Live speech transcription for creatorstudio."""

from .base import AbstractRecognitionStream
from .capability import RecognitionCapability, probe_recognition
from .google_backend import GoogleStreamingRecognition
from .listener import TranscriptionListener, TRANSIENT_ERRORS

__all__ = [
    "AbstractRecognitionStream",
    "RecognitionCapability",
    "probe_recognition",
    "GoogleStreamingRecognition",
    "TranscriptionListener",
    "TRANSIENT_ERRORS",
]
