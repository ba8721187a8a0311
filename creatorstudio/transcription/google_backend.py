"""Google Speech-to-Text streaming recognition backend."""

import asyncio
import logging
import queue
from threading import Thread
from typing import Optional, Iterator

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions

from .base import AbstractRecognitionStream
from ..models.transcription import (
    RecognitionAlternative,
    RecognitionResult,
    RecognitionEvent,
    RecognitionErrorEvent,
)

logger = logging.getLogger(__name__)


class GoogleStreamingRecognition(AbstractRecognitionStream):
    """Google Cloud Speech ``streaming_recognize`` with interim results.

    The blocking gRPC response iterator runs on a daemon thread fed from a
    queue; everything it reports is marshalled back onto the event loop.
    """

    def __init__(self,
                 client: speech.SpeechClient,
                 language: str = "en-US",
                 sample_rate: int = 16000,
                 enable_automatic_punctuation: bool = True):
        """Initialize the stream.

        Args:
            client: Shared SpeechClient
            language: Language code (e.g., 'en-US', 'es-ES')
            sample_rate: Sample rate of the LINEAR16 audio fed in
            enable_automatic_punctuation: Enable automatic punctuation
        """
        super().__init__(language)
        self.client = client
        self.sample_rate = sample_rate
        self.service_name = "Google Speech-to-Text"
        self.streaming_config = speech.StreamingRecognitionConfig(
            config=speech.RecognitionConfig(
                encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
                sample_rate_hertz=sample_rate,
                language_code=language,
                enable_automatic_punctuation=enable_automatic_punctuation,
            ),
            interim_results=True,
            single_utterance=False,
        )

        self._audio: "queue.Queue[Optional[bytes]]" = queue.Queue()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[Thread] = None
        self._closed = False

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("Recognition stream already started")
        self._loop = asyncio.get_running_loop()
        self._thread = Thread(target=self._run, daemon=True)
        self._thread.name = "RecognitionStreamThread"
        self._thread.start()
        logger.debug(f"{self.service_name} stream started ({self.language})")

    def feed(self, audio: bytes) -> None:
        if not self._closed and audio:
            self._audio.put(audio)

    def stop(self) -> None:
        if self._closed:
            return
        self._closed = True
        # Ends the request generator; the server then closes the response stream
        self._audio.put(None)

    def _requests(self) -> Iterator[speech.StreamingRecognizeRequest]:
        while True:
            chunk = self._audio.get()
            if chunk is None:
                return
            yield speech.StreamingRecognizeRequest(audio_content=chunk)

    def _run(self) -> None:
        """Internal method: drive the gRPC stream on the background thread."""
        received_results = False
        error: Optional[RecognitionErrorEvent] = None
        try:
            responses = self.client.streaming_recognize(self.streaming_config, self._requests())
            for response in responses:
                if not response.results:
                    continue
                received_results = True
                self._post(self._emit_result, self._to_event(response))
        except gax_exceptions.OutOfRange as e:
            # Stream time limit reached; a normal end
            logger.debug(f"{self.service_name} stream limit reached: {e}")
        except (gax_exceptions.DeadlineExceeded, gax_exceptions.ServiceUnavailable) as e:
            error = RecognitionErrorEvent("network", str(e))
        except (gax_exceptions.PermissionDenied, gax_exceptions.Unauthenticated) as e:
            error = RecognitionErrorEvent("not-allowed", str(e))
        except gax_exceptions.GoogleAPICallError as e:
            error = RecognitionErrorEvent("service-error", str(e))
        finally:
            self._closed = True
            if error is None and not received_results:
                error = RecognitionErrorEvent("no-speech", "stream ended without results")
            if error is not None:
                self._post(self._emit_error, error)
            self._post(self._emit_end)

    def _post(self, callback, *args) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Event loop gone, dropping recognition callback")
            return
        loop.call_soon_threadsafe(callback, *args)

    @staticmethod
    def _to_event(response: speech.StreamingRecognizeResponse) -> RecognitionEvent:
        results = []
        for result in response.results:
            alternatives = [
                RecognitionAlternative(transcript=alt.transcript, confidence=alt.confidence)
                for alt in result.alternatives
            ]
            results.append(RecognitionResult(alternatives=alternatives, is_final=result.is_final))
        return RecognitionEvent(results=results, result_index=0)
