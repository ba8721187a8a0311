"""Live transcription listener with supervised restart."""

import logging
from functools import partial
from typing import Callable, Optional

from ..errors import RecognitionError, RecognitionFatal, RecognitionTransient, RecognitionUnavailable
from ..models.transcription import (
    RecognitionEvent,
    RecognitionErrorEvent,
    TranscriptState,
)
from .base import AbstractRecognitionStream
from .capability import RecognitionCapability

logger = logging.getLogger(__name__)

# Error codes that recover on their own once the stream restarts
TRANSIENT_ERRORS = frozenset({"no-speech", "network"})


def classify_error(event: RecognitionErrorEvent) -> RecognitionError:
    """Map a recognizer error code to its typed error."""
    if event.error in TRANSIENT_ERRORS:
        return RecognitionTransient(event.error, event.message)
    return RecognitionFatal(event.error, event.message)


class TranscriptionListener:
    """Accumulates finalized text and an interim view from a recognition stream.

    Recognition streams end unpredictably (silence timeouts, service limits,
    internal errors). While ``should_be_running`` is set, an ended stream is
    replaced immediately, inside its own end callback, so live transcription
    keeps pace with the recording.
    """

    def __init__(
        self,
        capability: RecognitionCapability,
        language: str = "en-US",
        on_update: Optional[Callable[[str], None]] = None,
        on_warning: Optional[Callable[[RecognitionError], None]] = None,
    ):
        """Initialize the listener.

        Args:
            capability: Probed recognition capability
            language: Recognition language code
            on_update: Called with the live transcript after every result
            on_warning: Called with errors the user should see; never stops recording
        """
        self.capability = capability
        self.language = language
        self.on_update = on_update
        self.on_warning = on_warning

        self.state = TranscriptState()
        self.should_be_running = False
        self.restart_count = 0
        self._stream: Optional[AbstractRecognitionStream] = None
        self._reported_unavailable = False

    @property
    def supported(self) -> bool:
        return self.capability.available

    @property
    def is_running(self) -> bool:
        return self._stream is not None

    @property
    def finalized(self) -> str:
        return self.state.finalized

    @property
    def interim(self) -> str:
        return self.state.interim

    @property
    def live_transcript(self) -> str:
        return self.state.live

    @property
    def transcript(self) -> str:
        """The finalized transcript as handed to callers at stop time."""
        return self.state.finalized.strip()

    def reset(self) -> None:
        self.state = TranscriptState()
        self.restart_count = 0

    def start(self) -> None:
        if not self.capability.available:
            if not self._reported_unavailable:
                self._reported_unavailable = True
                logger.warning(f"Speech recognition not supported: {self.capability.reason}")
                self._warn(RecognitionUnavailable("not-supported", self.capability.reason))
            return
        if self.should_be_running:
            return
        self.should_be_running = True
        self._open_stream()

    def stop(self) -> None:
        self.should_be_running = False
        stream, self._stream = self._stream, None
        if stream is not None:
            stream.stop()
            logger.debug("Recognition stream stopped")

    def feed(self, audio: bytes) -> None:
        if self._stream is not None:
            self._stream.feed(audio)

    def _open_stream(self) -> None:
        stream = self.capability.create_stream(self.language)
        stream.on_result = partial(self._handle_result, stream)
        stream.on_error = partial(self._handle_error, stream)
        stream.on_end = partial(self._handle_end, stream)
        self._stream = stream
        try:
            stream.start()
        except Exception as e:
            self._stream = None
            self.should_be_running = False
            logger.error(f"Could not start speech recognition: {e}", exc_info=True)
            self._warn(RecognitionFatal("start-failed", str(e)))

    def _handle_result(self, stream: AbstractRecognitionStream, event: RecognitionEvent) -> None:
        if stream is not self._stream:
            logger.debug("Ignoring result from a retired recognition stream")
            return

        finalized = []
        interim = ""
        for result in event.results[event.result_index:]:
            if result.is_final:
                finalized.append(result.transcript + " ")
            else:
                interim += result.transcript

        if finalized:
            self.state.finalized += "".join(finalized)
        self.state.interim = interim

        if self.on_update:
            self.on_update(self.state.live)

    def _handle_error(self, stream: AbstractRecognitionStream, event: RecognitionErrorEvent) -> None:
        if stream is not self._stream:
            return
        error = classify_error(event)
        if isinstance(error, RecognitionTransient):
            logger.debug(f"Transient recognition error ignored: {error}")
            return
        logger.error(f"Speech recognition error: {error}")
        self._warn(error)

    def _handle_end(self, stream: AbstractRecognitionStream) -> None:
        if stream is not self._stream:
            return
        self._stream = None
        if not self.should_be_running:
            return
        self.restart_count += 1
        logger.debug(f"Recognition stream ended while active, restarting (#{self.restart_count})")
        self._open_stream()

    def _warn(self, error: RecognitionError) -> None:
        if self.on_warning:
            self.on_warning(error)
