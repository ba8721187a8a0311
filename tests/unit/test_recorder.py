"""Unit tests for ChunkedRecorder."""

import asyncio

import pytest

from creatorstudio.audio.encoding import WAV
from creatorstudio.audio.recorder import ChunkedRecorder, RecorderState
from creatorstudio.errors import InvalidState

from conftest import BYTES_PER_SECOND, make_handle, silence, tone


def deliver(handle, pcm: bytes, buffer_bytes: int = 2048) -> None:
    for offset in range(0, len(pcm), buffer_bytes):
        handle.deliver(pcm[offset:offset + buffer_bytes])


@pytest.fixture
def handle():
    return make_handle()


@pytest.fixture
def recorder(clock):
    return ChunkedRecorder(timeslice_seconds=1.0, encoding=WAV, clock=clock)


@pytest.mark.unit
class TestChunkedRecorder:
    """Test cases for ChunkedRecorder."""

    def test_start_registers_listener(self, recorder, handle):
        """Starting attaches the recorder to the capture handle."""
        recorder.start(handle)

        assert recorder.state is RecorderState.RECORDING
        assert len(handle.listeners) == 1

    def test_slices_exact_one_second_chunks(self, recorder, handle):
        """Audio is cut into chunks holding exactly one timeslice of samples."""
        recorder.start(handle)
        deliver(handle, silence(3.5))

        assert len(recorder.chunks) == 3
        assert [chunk.sequence for chunk in recorder.chunks] == [0, 1, 2]
        assert all(chunk.size == BYTES_PER_SECOND for chunk in recorder.chunks)
        assert all(chunk.duration_seconds == pytest.approx(1.0) for chunk in recorder.chunks)

    def test_stop_after_n_chunks_of_silence(self, recorder, handle):
        """N seconds of silence yield a blob made of exactly N chunks."""
        recorder.start(handle)
        deliver(handle, silence(4.0))

        blob = asyncio.run(recorder.stop())

        assert blob.chunk_count == 4
        assert blob.duration_seconds == pytest.approx(4.0)
        assert blob.mime_type == "audio/wav"
        assert blob.data[:4] == b"RIFF"

    def test_stop_flushes_partial_chunk(self, recorder, handle):
        """The trailing partial slice becomes the last chunk."""
        recorder.start(handle)
        deliver(handle, tone(2.5))

        blob = asyncio.run(recorder.stop())

        assert blob.chunk_count == 3
        assert recorder.chunks[-1].size == BYTES_PER_SECOND // 2
        assert blob.duration_seconds == pytest.approx(2.5)

    def test_chunks_keep_emission_order(self, recorder, handle):
        """Concatenated chunks reproduce the captured audio byte for byte."""
        pcm = tone(2.25)
        recorder.start(handle)
        deliver(handle, pcm)
        asyncio.run(recorder.stop())

        assert b"".join(chunk.data for chunk in recorder.chunks) == pcm

    def test_on_chunk_receives_running_count(self, clock, handle):
        """The chunk hook sees each chunk with the number of chunks so far."""
        seen = []
        recorder = ChunkedRecorder(encoding=WAV, clock=clock,
                                   on_chunk=lambda chunk, count: seen.append((chunk.sequence, count)))
        recorder.start(handle)
        deliver(handle, silence(3.0))

        assert seen == [(0, 1), (1, 2), (2, 3)]

    def test_elapsed_excludes_paused_time(self, recorder, handle, clock):
        """Duration is recording time minus paused time."""
        recorder.start(handle)
        clock.advance(3)
        recorder.pause()
        clock.advance(5)
        recorder.resume()
        clock.advance(2)

        assert recorder.elapsed == pytest.approx(5.0)
        asyncio.run(recorder.stop())
        clock.advance(10)
        assert recorder.elapsed == pytest.approx(5.0)

    def test_pause_stops_capture_and_ignores_audio(self, recorder, handle):
        """While paused the stream is stopped and stray frames are dropped."""
        recorder.start(handle)
        deliver(handle, silence(0.5))
        recorder.pause()
        deliver(handle, silence(2.0))

        assert handle.stream.active is False
        assert recorder.chunks == []
        assert recorder.get_stats().buffered_bytes == BYTES_PER_SECOND // 2

    def test_pause_keeps_frames_flushed_by_stream_stop(self, recorder, handle):
        """Buffers PortAudio hands over while the stream stops still land in the recording."""
        async def scenario():
            loop = asyncio.get_running_loop()
            tail = silence(0.25)

            def stop_stream():
                handle.stream.active = False
                loop.call_soon_threadsafe(handle.deliver, tail)

            handle.stream.stop_stream.side_effect = stop_stream
            recorder.start(handle)
            deliver(handle, silence(0.5))
            recorder.pause()
            await asyncio.sleep(0)
            await asyncio.sleep(0)
            deliver(handle, silence(1.0))

        asyncio.run(scenario())

        assert recorder.state is RecorderState.PAUSED
        assert recorder.get_stats().buffered_bytes == int(BYTES_PER_SECOND * 0.75)

    def test_pause_then_stop_keeps_flushed_frames(self, recorder, handle):
        async def scenario():
            loop = asyncio.get_running_loop()

            def stop_stream():
                handle.stream.active = False
                loop.call_soon_threadsafe(handle.deliver, silence(0.25))

            handle.stream.stop_stream.side_effect = stop_stream
            recorder.start(handle)
            deliver(handle, silence(1.0))
            recorder.pause()
            return await recorder.stop()

        blob = asyncio.run(scenario())

        assert blob.chunk_count == 2
        assert blob.duration_seconds == pytest.approx(1.25)

    def test_pause_twice_is_noop(self, recorder, handle, clock):
        """A second pause leaves state, elapsed time and chunks unchanged."""
        recorder.start(handle)
        deliver(handle, silence(1.0))
        clock.advance(1)
        recorder.pause()
        elapsed = recorder.elapsed
        chunks = list(recorder.chunks)

        clock.advance(4)
        recorder.pause()

        assert recorder.state is RecorderState.PAUSED
        assert recorder.elapsed == elapsed
        assert recorder.chunks == chunks
        assert handle.stream.stop_stream.call_count == 1

    def test_resume_while_recording_is_noop(self, recorder, handle):
        recorder.start(handle)
        recorder.resume()

        assert recorder.state is RecorderState.RECORDING
        handle.stream.start_stream.assert_not_called()

    def test_resume_restarts_capture(self, recorder, handle):
        recorder.start(handle)
        recorder.pause()
        recorder.resume()

        assert handle.stream.active is True
        deliver(handle, silence(1.0))
        assert len(recorder.chunks) == 1

    def test_stop_releases_device(self, recorder, handle):
        """Stopping gives the microphone back."""
        recorder.start(handle)
        asyncio.run(recorder.stop())

        assert handle.released is True
        handle.stream.close.assert_called_once()
        assert recorder.state is RecorderState.STOPPED

    def test_transitions_after_stop_raise(self, recorder, handle):
        """Every transition after stop is a programming error."""
        recorder.start(handle)
        asyncio.run(recorder.stop())

        with pytest.raises(InvalidState):
            recorder.pause()
        with pytest.raises(InvalidState):
            recorder.resume()
        with pytest.raises(InvalidState):
            asyncio.run(recorder.stop())
        with pytest.raises(InvalidState):
            recorder.start(make_handle())

    def test_transitions_before_start_raise(self, recorder):
        with pytest.raises(InvalidState):
            recorder.pause()
        with pytest.raises(InvalidState):
            asyncio.run(recorder.stop())

    def test_empty_recording(self, recorder, handle):
        """Stopping before any audio arrives yields an empty blob."""
        recorder.start(handle)
        blob = asyncio.run(recorder.stop())

        assert blob.chunk_count == 0
        assert blob.data == b""
        assert blob.duration_seconds == 0.0

    def test_negotiates_encoding_on_start(self, clock, handle, wav_only):
        """Without an explicit encoding the recorder negotiates one once."""
        recorder = ChunkedRecorder(clock=clock)
        recorder.start(handle)

        assert recorder.encoding is WAV
        assert recorder.get_stats().mime_type == "audio/wav"

    def test_rejects_non_positive_timeslice(self):
        with pytest.raises(ValueError):
            ChunkedRecorder(timeslice_seconds=0)
