"""Chunked recorder: slices the capture stream into fixed-length chunks."""

import asyncio
import logging
import time
from enum import Enum
from typing import Optional, Callable, List

from ..errors import InvalidState
from ..models.audio import AudioChunk, AudioBlob, AudioStats
from .capture import CaptureHandle
from .encoding import AudioEncoding, negotiate_encoding, encode_pcm

logger = logging.getLogger(__name__)

ChunkCallback = Callable[[AudioChunk, int], None]


class RecorderState(Enum):
    INACTIVE = "inactive"
    RECORDING = "recording"
    PAUSED = "paused"
    STOPPED = "stopped"


class ChunkedRecorder:
    """Buffers captured audio into timeslice-sized chunks and tracks elapsed time.

    A recorder is single-use: once stopped, every further transition raises
    ``InvalidState``.
    """

    def __init__(
        self,
        timeslice_seconds: float = 1.0,
        encoding: Optional[AudioEncoding] = None,
        on_chunk: Optional[ChunkCallback] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initialize the recorder.

        Args:
            timeslice_seconds: Length of audio in each emitted chunk
            encoding: Output encoding; negotiated from the stream's sample rate if None
            on_chunk: Called with (chunk, total_chunks) after each chunk is appended
            clock: Monotonic clock used for elapsed-time accounting
        """
        if timeslice_seconds <= 0:
            raise ValueError("timeslice_seconds must be > 0")
        self.timeslice_seconds = timeslice_seconds
        self.encoding = encoding
        self.on_chunk = on_chunk
        self.clock = clock

        self.state = RecorderState.INACTIVE
        self.handle: Optional[CaptureHandle] = None
        self.chunks: List[AudioChunk] = []
        self._pending = bytearray()
        self._bytes_per_slice = 0
        self._accumulated = 0.0
        self._resumed_at: Optional[float] = None
        self._stopping = False
        self._draining = False
        self._drain_generation = 0

    @property
    def elapsed(self) -> float:
        """Seconds recorded, excluding time spent paused."""
        if self._resumed_at is None:
            return self._accumulated
        return self._accumulated + (self.clock() - self._resumed_at)

    def start(self, handle: CaptureHandle) -> None:
        if self.state is not RecorderState.INACTIVE:
            raise InvalidState(f"Cannot start a recorder that is {self.state.value}")

        if self.encoding is None:
            self.encoding = negotiate_encoding(handle.sample_rate)

        frame_bytes = handle.channels * handle.sample_width
        frames_per_slice = max(1, int(handle.sample_rate * self.timeslice_seconds))
        self._bytes_per_slice = frames_per_slice * frame_bytes

        self.handle = handle
        self.chunks = []
        self._pending = bytearray()
        self._accumulated = 0.0
        self._resumed_at = self.clock()
        handle.add_listener(self._on_audio)
        self.state = RecorderState.RECORDING
        logger.info(f"Recorder started: {self.timeslice_seconds}s slices "
                    f"({self._bytes_per_slice} bytes), {self.encoding.mime_type}")

    def pause(self) -> None:
        self._check_live("pause")
        if self.state is RecorderState.PAUSED:
            return
        self.handle.pause_capture()
        self._accumulated = self.elapsed
        self._resumed_at = None
        self.state = RecorderState.PAUSED
        self._drain_paused_tail()
        logger.debug(f"Recorder paused at {self._accumulated:.2f}s")

    def resume(self) -> None:
        self._check_live("resume")
        if self.state is RecorderState.RECORDING:
            return
        self.handle.resume_capture()
        self._resumed_at = self.clock()
        self.state = RecorderState.RECORDING
        logger.debug(f"Recorder resumed from {self._accumulated:.2f}s")

    async def stop(self) -> AudioBlob:
        """Flush the last partial chunk, encode everything and release the device."""
        self._check_live("stop")
        self._stopping = True
        self._accumulated = self.elapsed
        self._resumed_at = None
        loop = asyncio.get_running_loop()
        handle = self.handle

        try:
            await loop.run_in_executor(None, handle.pause_capture)
            # Let frames already scheduled from the capture thread land
            await asyncio.sleep(0)

            if self._pending:
                self._emit(bytes(self._pending))
            self._pending = bytearray()

            self.state = RecorderState.STOPPED
            handle.remove_listener(self._on_audio)

            pcm = b"".join(chunk.data for chunk in self.chunks)
            encoding = self.encoding
            data = await loop.run_in_executor(
                None, encode_pcm, pcm, handle.sample_rate, handle.channels, encoding)
        finally:
            self.state = RecorderState.STOPPED
            handle.release()

        blob = AudioBlob(
            data=data,
            mime_type=encoding.mime_type,
            chunk_count=len(self.chunks),
            sample_rate=handle.sample_rate,
            channels=handle.channels,
            duration_seconds=len(pcm) / handle.bytes_per_second,
        )
        logger.info(f"Recorder stopped: {blob.chunk_count} chunks, {blob.size} bytes "
                    f"{blob.mime_type}, {self._accumulated:.1f}s elapsed")
        return blob

    def get_stats(self) -> AudioStats:
        return AudioStats(
            state=self.state.value,
            elapsed_seconds=self.elapsed,
            total_chunks=len(self.chunks),
            buffered_bytes=sum(chunk.size for chunk in self.chunks) + len(self._pending),
            sample_rate=self.handle.sample_rate if self.handle else 0,
            mime_type=self.encoding.mime_type if self.encoding else "",
        )

    def _check_live(self, operation: str) -> None:
        if self.state is RecorderState.STOPPED or self._stopping:
            raise InvalidState(f"Cannot {operation}: recorder already stopped")
        if self.state is RecorderState.INACTIVE:
            raise InvalidState(f"Cannot {operation}: recorder not started")

    def _drain_paused_tail(self) -> None:
        # stop_stream() runs the last PortAudio callbacks, which post their
        # frames to the loop; keep them until the loop has worked through them.
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._draining = True
        self._drain_generation += 1
        loop.call_soon(self._end_drain, self._drain_generation)

    def _end_drain(self, generation: int) -> None:
        if generation == self._drain_generation:
            self._draining = False

    def _accepting(self) -> bool:
        if self.state is RecorderState.RECORDING:
            return True
        return self.state is RecorderState.PAUSED and self._draining

    def _on_audio(self, frames: bytes) -> None:
        if not self._accepting():
            return
        self._pending.extend(frames)
        while len(self._pending) >= self._bytes_per_slice:
            data = bytes(self._pending[:self._bytes_per_slice])
            del self._pending[:self._bytes_per_slice]
            self._emit(data)

    def _emit(self, data: bytes) -> None:
        chunk = AudioChunk(
            sequence=len(self.chunks),
            data=data,
            timestamp=time.time(),
            duration_seconds=len(data) / self.handle.bytes_per_second,
        )
        self.chunks.append(chunk)
        if self.on_chunk:
            self.on_chunk(chunk, len(self.chunks))
