"""Abstract base class for continuous speech recognition streams."""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import logging

from ..models.transcription import RecognitionEvent, RecognitionErrorEvent

logger = logging.getLogger(__name__)


class AbstractRecognitionStream(ABC):
    """One continuous, interim-results recognition session.

    A stream is started once. It reports through three callbacks, always
    invoked on the event loop thread: ``on_result`` for every recognition
    event, ``on_error`` for errors, and ``on_end`` exactly once when the
    stream terminates for any reason, including ``stop()``.
    """

    def __init__(self, language: str = "en-US"):
        """Initialize stream with language preference."""
        self.language = language
        self.on_result: Optional[Callable[[RecognitionEvent], None]] = None
        self.on_error: Optional[Callable[[RecognitionErrorEvent], None]] = None
        self.on_end: Optional[Callable[[], None]] = None

    @abstractmethod
    def start(self) -> None:
        """Begin recognizing. Must be called from the event loop thread."""
        pass

    @abstractmethod
    def feed(self, audio: bytes) -> None:
        """Supply 16-bit PCM audio captured since the last call."""
        pass

    @abstractmethod
    def stop(self) -> None:
        """Ask the stream to finish; ``on_end`` follows."""
        pass

    def _emit_result(self, event: RecognitionEvent) -> None:
        if self.on_result:
            self.on_result(event)

    def _emit_error(self, event: RecognitionErrorEvent) -> None:
        if self.on_error:
            self.on_error(event)

    def _emit_end(self) -> None:
        if self.on_end:
            self.on_end()
