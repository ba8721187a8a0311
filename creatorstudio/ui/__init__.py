"""Terminal user interface."""

from .keyboard_input import KeyboardInputHandler, LineInputHandler, create_input_handler
from .recording_screen import RecordingScreen, format_duration

__all__ = [
    "KeyboardInputHandler",
    "LineInputHandler",
    "create_input_handler",
    "RecordingScreen",
    "format_duration",
]
