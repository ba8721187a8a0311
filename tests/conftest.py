"""Pytest configuration and fixtures for creatorstudio tests."""

import pytest
import tempfile
import logging
from unittest.mock import Mock, patch

import numpy as np

from creatorstudio.audio.capture import CaptureHandle
from creatorstudio.audio.encoding import WAV
from creatorstudio.models.transcription import (
    RecognitionAlternative,
    RecognitionResult,
    RecognitionEvent,
    RecognitionErrorEvent,
)
from creatorstudio.transcription.base import AbstractRecognitionStream
from creatorstudio.transcription.capability import RecognitionCapability


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_RATE = 16000
BYTES_PER_SECOND = SAMPLE_RATE * 2


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests without hardware or network")
    config.addinivalue_line("markers", "integration: multi-component workflows with fakes")
    config.addinivalue_line("markers", "hardware: needs a real microphone")


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_stream():
    """Mock PyAudio stream whose is_active() follows stop_stream/start_stream."""
    stream = Mock()
    stream.active = True
    stream.is_active.side_effect = lambda: stream.active

    def stop_stream():
        stream.active = False

    def start_stream():
        stream.active = True

    stream.stop_stream.side_effect = stop_stream
    stream.start_stream.side_effect = start_stream
    return stream


def make_handle(sample_rate: int = SAMPLE_RATE, channels: int = 1) -> CaptureHandle:
    return CaptureHandle(stream=make_stream(), sample_rate=sample_rate, channels=channels, sample_width=2)


def silence(seconds: float, sample_rate: int = SAMPLE_RATE) -> bytes:
    return np.zeros(int(seconds * sample_rate), dtype=np.int16).tobytes()


def tone(seconds: float, freq: float = 440.0, sample_rate: int = SAMPLE_RATE, amplitude: float = 0.5) -> bytes:
    t = np.arange(int(seconds * sample_rate)) / sample_rate
    return (amplitude * 32767 * np.sin(2 * np.pi * freq * t)).astype(np.int16).tobytes()


class FakeCaptureDevice:
    """Capture device that hands out fake handles, or raises ``error``."""

    def __init__(self, error: Exception = None, sample_rate: int = SAMPLE_RATE):
        self.error = error
        self.sample_rate = sample_rate
        self.handles = []

    async def acquire(self) -> CaptureHandle:
        if self.error is not None:
            raise self.error
        handle = make_handle(self.sample_rate)
        self.handles.append(handle)
        return handle

    @property
    def handle(self) -> CaptureHandle:
        return self.handles[-1]


class FakeRecognitionStream(AbstractRecognitionStream):
    """Recognition stream driven by the test instead of a service."""

    def __init__(self, language: str = "en-US"):
        super().__init__(language)
        self.started = False
        self.stopped = False
        self.fed = []

    def start(self) -> None:
        self.started = True

    def feed(self, audio: bytes) -> None:
        self.fed.append(audio)

    def stop(self) -> None:
        self.stopped = True

    def emit_result(self, *segments, result_index: int = 0) -> None:
        """Each segment is (text, is_final)."""
        results = [
            RecognitionResult(alternatives=[RecognitionAlternative(text, 0.9)], is_final=is_final)
            for text, is_final in segments
        ]
        self._emit_result(RecognitionEvent(results=results, result_index=result_index))

    def emit_error(self, error: str, message: str = "") -> None:
        self._emit_error(RecognitionErrorEvent(error, message))

    def emit_end(self) -> None:
        self._emit_end()


class FakeRecognizer:
    """Stream factory that remembers every stream it created."""

    def __init__(self):
        self.streams = []

    def __call__(self, language: str) -> FakeRecognitionStream:
        stream = FakeRecognitionStream(language)
        self.streams.append(stream)
        return stream

    @property
    def current(self) -> FakeRecognitionStream:
        return self.streams[-1]


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recognizer():
    return FakeRecognizer()


@pytest.fixture
def capability(recognizer):
    return RecognitionCapability.available_with(recognizer)


@pytest.fixture
def wav_only(monkeypatch):
    """Force the WAV fallback so tests do not depend on libsndfile's Opus support."""
    monkeypatch.setattr("creatorstudio.audio.recorder.negotiate_encoding", lambda sample_rate: WAV)


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = make_stream()

        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.get_sample_size.return_value = 2
        mock_pyaudio_instance.get_default_input_device_info.return_value = {
            'index': 0, 'name': 'Test Microphone', 'maxInputChannels': 1,
        }
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }
