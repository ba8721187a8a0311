"""Session controller: the recording lifecycle state machine."""

import asyncio
import logging
import time
from typing import Callable, Optional, Set

from ..audio.analyser import LevelAnalyser
from ..audio.capture import CaptureDevice
from ..audio.recorder import ChunkedRecorder
from ..config import StudioConfig
from ..errors import CaptureError, CheckpointWriteFailure, InvalidState, RecognitionError, RecognitionUnavailable
from ..models.audio import AudioChunk
from ..models.events import SessionEvent
from ..models.session import SessionState, RecordingSession, RecordingResult
from ..storage.resilience_store import ResilienceStore
from ..transcription.capability import RecognitionCapability
from ..transcription.listener import TranscriptionListener
from .publisher import SessionPublisher

logger = logging.getLogger(__name__)

MICROPHONE_ERROR = "Could not access microphone. Please ensure microphone permissions are granted."
RECOGNITION_UNSUPPORTED_WARNING = (
    "Speech recognition is not available. Audio will still be recorded, "
    "but live transcription is disabled."
)

_ACTIVE_STATES = (SessionState.RECORDING, SessionState.PAUSED, SessionState.FINALIZING)


class SessionController:
    """Owns the single current recording session.

    States: IDLE -> RECORDING <-> PAUSED -> FINALIZING -> IDLE, or IDLE -> ERROR
    when the microphone cannot be acquired. All methods must be called from
    the event loop thread.
    """

    def __init__(
        self,
        capture_device: CaptureDevice,
        store: ResilienceStore,
        capability: RecognitionCapability,
        timeslice_seconds: float = 1.0,
        checkpoint_every_chunks: int = 5,
        language: str = "en-US",
        clock: Callable[[], float] = time.monotonic,
        publisher: Optional[SessionPublisher] = None,
        tick_interval: float = 1.0,
    ):
        """Initialize the controller.

        Args:
            capture_device: Microphone adapter
            store: Opened resilience store for checkpoints
            capability: Probed speech recognition capability
            timeslice_seconds: Chunk length handed to the recorder
            checkpoint_every_chunks: Checkpoint after every Nth chunk
            language: Recognition language code
            clock: Monotonic clock shared with the recorder
            publisher: Session event publisher
            tick_interval: Seconds between duration updates
        """
        if checkpoint_every_chunks < 1:
            raise ValueError("checkpoint_every_chunks must be >= 1")
        self.capture_device = capture_device
        self.store = store
        self.timeslice_seconds = timeslice_seconds
        self.checkpoint_every_chunks = checkpoint_every_chunks
        self.clock = clock
        self.publisher = publisher or SessionPublisher()
        self.tick_interval = tick_interval

        self.listener = TranscriptionListener(
            capability,
            language=language,
            on_update=self._on_transcript,
            on_warning=self._on_warning,
        )

        self.state = SessionState.IDLE
        self.session: Optional[RecordingSession] = None
        self.recorder: Optional[ChunkedRecorder] = None
        self.error: Optional[str] = None
        self.warning: Optional[str] = None

        self._acquiring = False
        self._tick_task: Optional[asyncio.Task] = None
        self._pending_checkpoints: Set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: StudioConfig, store: ResilienceStore,
                    capability: RecognitionCapability, **kwargs) -> "SessionController":
        capture_device = CaptureDevice(
            sample_rate=config.get('audio.sample_rate', 16000),
            channels=config.get('audio.channels', 1),
            frames_per_buffer=config.get('audio.frames_per_buffer', 1024),
        )
        return cls(
            capture_device,
            store,
            capability,
            timeslice_seconds=config.get('audio.timeslice_seconds', 1.0),
            checkpoint_every_chunks=config.get('resilience.checkpoint_every_chunks', 5),
            language=config.get('transcription.language', 'en-US'),
            **kwargs,
        )

    # Observables

    @property
    def is_recording(self) -> bool:
        """True while a session holds the device, paused or not."""
        return self.state in (SessionState.RECORDING, SessionState.PAUSED)

    @property
    def is_paused(self) -> bool:
        return self.state is SessionState.PAUSED

    @property
    def duration(self) -> int:
        return self.session.duration if self.session else 0

    @property
    def live_transcript(self) -> str:
        return self.listener.live_transcript

    @property
    def analyser(self) -> Optional[LevelAnalyser]:
        if self.session is None or self.session.handle is None:
            return None
        return self.session.handle.analyser

    # Lifecycle

    async def start(self) -> RecordingSession:
        """Acquire the microphone and begin recording.

        Raises:
            InvalidState: a session is already active or being started
            PermissionDenied, DeviceUnavailable: the microphone could not be acquired
        """
        if self._acquiring or self.state in _ACTIVE_STATES:
            raise InvalidState(f"Cannot start while {self.state.value}; only one session at a time")

        self._acquiring = True
        self.error = None
        if self.listener.supported:
            # A missing recognizer is only reported once, so keep that warning
            self.warning = None
        try:
            handle = await self.capture_device.acquire()
        except CaptureError as e:
            logger.error(f"Failed to acquire microphone: {e}")
            self.session = None
            self.error = MICROPHONE_ERROR
            self._set_state(SessionState.ERROR)
            raise
        finally:
            self._acquiring = False

        session = RecordingSession.create()
        session.handle = handle
        recorder = ChunkedRecorder(
            timeslice_seconds=self.timeslice_seconds,
            on_chunk=self._on_chunk,
            clock=self.clock,
        )
        try:
            recorder.start(handle)
        except Exception:
            handle.release()
            raise

        self.session = session
        self.recorder = recorder
        handle.add_listener(self.listener.feed)

        self.listener.reset()
        self.listener.start()
        self._set_state(SessionState.RECORDING)
        self._start_tick()
        logger.info(f"Recording session started: {session.session_id}")
        return session

    def pause(self) -> None:
        if self.state is not SessionState.RECORDING:
            logger.debug(f"pause() ignored while {self.state.value}")
            return
        self.recorder.pause()
        self._stop_tick()
        self.listener.stop()
        self.session.duration = self._elapsed_seconds()
        self._set_state(SessionState.PAUSED)
        self._publish("duration", {"duration": self.session.duration})
        self._schedule_checkpoint()
        logger.info(f"Recording paused at {self.session.duration}s")

    def resume(self) -> None:
        if self.state is not SessionState.PAUSED:
            logger.debug(f"resume() ignored while {self.state.value}")
            return
        self.recorder.resume()
        self.listener.start()
        self._set_state(SessionState.RECORDING)
        self._start_tick()
        logger.info(f"Recording resumed from {self.session.duration}s")

    async def stop(self) -> RecordingResult:
        """Finalize the session and return the audio blob and transcript.

        Outside RECORDING or PAUSED this returns ``RecordingResult.empty()``.
        """
        if self.state not in (SessionState.RECORDING, SessionState.PAUSED):
            logger.debug(f"stop() while {self.state.value}, nothing to finalize")
            return RecordingResult.empty()

        session = self.session
        recorder = self.recorder
        self._set_state(SessionState.FINALIZING)
        self._stop_tick()
        self.listener.stop()

        try:
            blob = await recorder.stop()
            session.duration = self._elapsed_seconds(recorder)
            await self._drain_checkpoints()
            try:
                await self.store.clear(session.session_id)
            except CheckpointWriteFailure as e:
                logger.warning(f"Could not clear checkpoint for {session.session_id}: {e}")
        except Exception as e:
            logger.error(f"Failed to finalize recording {session.session_id}: {e}", exc_info=True)
            self.error = f"Could not finalize recording: {e}"
            self.session = None
            self.recorder = None
            self._set_state(SessionState.ERROR)
            raise
        finally:
            session.handle = None

        result = RecordingResult(
            session_id=session.session_id,
            audio_blob=blob if blob.chunk_count else None,
            transcript=self.listener.transcript,
            duration=session.duration,
            started_at=session.started_at,
        )
        logger.info(f"Recording session {session.session_id} finished: {result.duration}s, "
                    f"{blob.chunk_count} chunks, {len(result.transcript)} transcript chars")

        self._publish("duration", {"duration": session.duration})
        self.session = None
        self.recorder = None
        self._set_state(SessionState.IDLE, session.session_id)
        return result

    # Internals

    def _elapsed_seconds(self, recorder: Optional[ChunkedRecorder] = None) -> int:
        recorder = recorder or self.recorder
        return int(round(recorder.elapsed)) if recorder else 0

    def _start_tick(self) -> None:
        self._stop_tick()
        self._tick_task = asyncio.get_running_loop().create_task(self._tick())

    def _stop_tick(self) -> None:
        if self._tick_task is not None:
            self._tick_task.cancel()
            self._tick_task = None

    async def _tick(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            if self.state is not SessionState.RECORDING:
                return
            duration = self._elapsed_seconds()
            if duration != self.session.duration:
                self.session.duration = duration
                self._publish("duration", {"duration": duration})

    def _on_chunk(self, chunk: AudioChunk, count: int) -> None:
        if self.state is SessionState.FINALIZING:
            return
        if count % self.checkpoint_every_chunks == 0:
            self._schedule_checkpoint()

    def _schedule_checkpoint(self) -> None:
        session_id = self.session.session_id
        chunks = list(self.recorder.chunks)
        task = asyncio.get_running_loop().create_task(self._checkpoint(session_id, chunks))
        self._pending_checkpoints.add(task)
        task.add_done_callback(self._pending_checkpoints.discard)

    async def _checkpoint(self, session_id: str, chunks) -> None:
        try:
            await self.store.checkpoint(session_id, chunks)
        except CheckpointWriteFailure as e:
            logger.warning(f"Checkpoint write failed for {session_id}: {e}")

    async def _drain_checkpoints(self) -> None:
        if self._pending_checkpoints:
            await asyncio.gather(*list(self._pending_checkpoints))

    def _on_transcript(self, live: str) -> None:
        self._publish("transcript", {
            "live": live,
            "finalized": self.listener.finalized,
            "interim": self.listener.interim,
        })

    def _on_warning(self, error: RecognitionError) -> None:
        if isinstance(error, RecognitionUnavailable):
            self.warning = RECOGNITION_UNSUPPORTED_WARNING
        else:
            self.warning = f"Speech recognition error: {error.error}. Audio recording continues."
        self._publish("warning", {"warning": self.warning, "error": error.error})

    def _set_state(self, state: SessionState, session_id: Optional[str] = None) -> None:
        previous = self.state
        self.state = state
        if self.session is not None:
            self.session.state = state
        logger.debug(f"Session state {previous.value} -> {state.value}")
        self._publish("state", {"previous": previous.value}, session_id)

    def _publish(self, event_type: str, metadata: dict, session_id: Optional[str] = None) -> None:
        if session_id is None and self.session is not None:
            session_id = self.session.session_id
        self.publisher.publish(SessionEvent(
            event_type=event_type,
            session_id=session_id,
            state=self.state.value,
            metadata=metadata,
        ))
