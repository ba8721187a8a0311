"""Service layer: session lifecycle and event publishing."""

from .publisher import SessionPublisher
from .session_controller import SessionController, MICROPHONE_ERROR

__all__ = [
    "SessionPublisher",
    "SessionController",
    "MICROPHONE_ERROR",
]
