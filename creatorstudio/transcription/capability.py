"""Capability probe for on-device speech recognition."""

import logging
from dataclasses import dataclass
from functools import partial
from typing import Callable, Optional

import google.auth
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import speech
from google.oauth2 import service_account

from .base import AbstractRecognitionStream
from .google_backend import GoogleStreamingRecognition
from ..config import StudioConfig

logger = logging.getLogger(__name__)

StreamFactory = Callable[[str], AbstractRecognitionStream]


@dataclass(frozen=True)
class RecognitionCapability:
    """Result of probing for a recognizer: a stream factory, or the reason there is none."""
    available: bool
    factory: Optional[StreamFactory] = None
    reason: str = ""

    @classmethod
    def available_with(cls, factory: StreamFactory) -> "RecognitionCapability":
        return cls(available=True, factory=factory)

    @classmethod
    def unavailable(cls, reason: str) -> "RecognitionCapability":
        return cls(available=False, reason=reason)

    def create_stream(self, language: str) -> AbstractRecognitionStream:
        if not self.available:
            raise RuntimeError(f"Speech recognition unavailable: {self.reason}")
        return self.factory(language)


def probe_recognition(config: StudioConfig) -> RecognitionCapability:
    """Resolve the recognition capability once, at application start."""
    if not config.get('transcription.enabled', True):
        return RecognitionCapability.unavailable("transcription disabled in configuration")

    try:
        credentials_path = config.get_google_credentials_path()
        if credentials_path:
            logger.info(f"Loading Google credentials from: {credentials_path}")
            credentials = service_account.Credentials.from_service_account_file(credentials_path)
        else:
            credentials, _ = google.auth.default()
    except (DefaultCredentialsError, FileNotFoundError, ValueError) as e:
        logger.warning(f"Speech recognition unavailable: {e}")
        return RecognitionCapability.unavailable(f"no Google credentials: {e}")

    client = speech.SpeechClient(credentials=credentials)
    factory = partial(
        _create_google_stream,
        client,
        sample_rate=config.get('audio.sample_rate', 16000),
        enable_automatic_punctuation=config.get('transcription.enable_automatic_punctuation', True),
    )
    logger.info("Google streaming speech recognition available")
    return RecognitionCapability.available_with(factory)


def _create_google_stream(client, language: str, sample_rate: int,
                          enable_automatic_punctuation: bool) -> GoogleStreamingRecognition:
    return GoogleStreamingRecognition(
        client,
        language=language,
        sample_rate=sample_rate,
        enable_automatic_punctuation=enable_automatic_punctuation,
    )
