"""Microphone capture adapter built on PyAudio."""

import asyncio
import logging
from typing import Optional, Callable, List

import pyaudio

from ..errors import PermissionDenied, DeviceUnavailable
from .analyser import LevelAnalyser
from .processing import AudioConstraints, VoiceProcessor, VOICE_CONSTRAINTS

logger = logging.getLogger(__name__)

# PortAudio codes that mean the device itself is missing rather than refused
_MISSING_DEVICE_ERRORS = (pyaudio.paInvalidDevice, pyaudio.paDeviceUnavailable)

AudioListener = Callable[[bytes], None]


class CaptureHandle:
    """Exclusive handle on an open input stream.

    Frames are delivered on the event loop thread: voice processing first,
    then the analyser, then every registered listener in registration order.
    """

    def __init__(
        self,
        stream,
        sample_rate: int = 16000,
        channels: int = 1,
        sample_width: int = 2,
        analyser: Optional[LevelAnalyser] = None,
        processor: Optional[VoiceProcessor] = None,
        on_release: Optional[Callable[[], None]] = None,
    ):
        self.stream = stream
        self.sample_rate = sample_rate
        self.channels = channels
        self.sample_width = sample_width
        self.analyser = analyser or LevelAnalyser()
        self.processor = processor
        self.listeners: List[AudioListener] = []
        self.released = False
        self.frames_delivered = 0
        self._on_release = on_release

    @property
    def bytes_per_second(self) -> int:
        return self.sample_rate * self.channels * self.sample_width

    def add_listener(self, listener: AudioListener) -> None:
        self.listeners.append(listener)

    def remove_listener(self, listener: AudioListener) -> None:
        if listener in self.listeners:
            self.listeners.remove(listener)

    def deliver(self, frames: bytes) -> None:
        """Push one captured buffer through processing to all listeners."""
        if self.released or not frames:
            return
        if self.processor is not None:
            frames = self.processor.process(frames)
        self.analyser.push_pcm(frames, self.channels)
        self.frames_delivered += 1
        for listener in list(self.listeners):
            listener(frames)

    def pause_capture(self) -> None:
        """Stop the hardware stream without releasing it."""
        if self.released:
            return
        if self.stream.is_active():
            self.stream.stop_stream()

    def resume_capture(self) -> None:
        if self.released:
            return
        if not self.stream.is_active():
            self.stream.start_stream()

    def release(self) -> None:
        """Stop the stream and give the microphone back. Safe to call twice."""
        if self.released:
            return
        self.released = True
        self.listeners.clear()
        try:
            if self.stream.is_active():
                self.stream.stop_stream()
            self.stream.close()
        finally:
            if self._on_release:
                self._on_release()
        logger.info(f"Capture device released after {self.frames_delivered} buffers")


class CaptureDevice:
    """Acquires the default microphone with the fixed voice constraints."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        frames_per_buffer: int = 1024,
        constraints: AudioConstraints = VOICE_CONSTRAINTS,
    ):
        """Initialize capture device parameters.

        Args:
            sample_rate: Audio sample rate (16kHz suits speech recognition)
            channels: Number of audio channels (1 for mono)
            frames_per_buffer: Samples delivered per PortAudio callback
            constraints: Voice processing constraints applied to the stream
        """
        self.sample_rate = sample_rate
        self.channels = channels
        self.frames_per_buffer = frames_per_buffer
        self.constraints = constraints
        self.format = pyaudio.paInt16

    async def acquire(self) -> CaptureHandle:
        """Open the microphone. May wait indefinitely on a host permission prompt.

        Raises:
            DeviceUnavailable: no input device exists
            PermissionDenied: the host refused to open the input stream
        """
        loop = asyncio.get_running_loop()
        handle_box: List[CaptureHandle] = []

        def on_audio(in_data, frame_count, time_info, status):
            if status:
                logger.debug(f"PortAudio callback status flags: {status}")
            if handle_box:
                loop.call_soon_threadsafe(handle_box[0].deliver, in_data)
            return (None, pyaudio.paContinue)

        pa, stream = await loop.run_in_executor(None, self._open_stream, on_audio)

        handle = CaptureHandle(
            stream=stream,
            sample_rate=self.sample_rate,
            channels=self.channels,
            sample_width=pa.get_sample_size(self.format),
            analyser=LevelAnalyser(),
            processor=VoiceProcessor(self.sample_rate, self.channels, self.constraints),
            on_release=pa.terminate,
        )
        handle_box.append(handle)
        logger.info(f"Capture device acquired: {self.sample_rate}Hz, {self.channels}ch, "
                    f"{self.frames_per_buffer} samples/buffer, constraints={self.constraints}")
        return handle

    def _open_stream(self, callback):
        pa = pyaudio.PyAudio()
        try:
            device_info = pa.get_default_input_device_info()
        except (IOError, OSError) as e:
            pa.terminate()
            raise DeviceUnavailable(f"No microphone found: {e}") from e

        logger.debug(f"Default input device: {device_info.get('name')}")
        try:
            stream = pa.open(
                format=self.format,
                channels=self.channels,
                rate=self.sample_rate,
                input=True,
                input_device_index=device_info.get('index'),
                frames_per_buffer=self.frames_per_buffer,
                stream_callback=callback,
            )
        except (IOError, OSError) as e:
            pa.terminate()
            if getattr(e, 'errno', None) in _MISSING_DEVICE_ERRORS:
                raise DeviceUnavailable(f"Microphone unavailable: {e}") from e
            raise PermissionDenied(f"Microphone access refused: {e}") from e
        return pa, stream
