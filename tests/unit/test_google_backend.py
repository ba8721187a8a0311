"""Unit tests for the Google streaming recognizer and the capability probe."""

import asyncio
from unittest.mock import Mock, patch

import pytest
from google.api_core import exceptions as gax_exceptions
from google.auth.exceptions import DefaultCredentialsError
from google.cloud import speech

from creatorstudio.config import StudioConfig
from creatorstudio.transcription.capability import RecognitionCapability, probe_recognition
from creatorstudio.transcription.google_backend import GoogleStreamingRecognition


def response(*segments):
    """Build a StreamingRecognizeResponse from (text, is_final) pairs."""
    return speech.StreamingRecognizeResponse(results=[
        speech.StreamingRecognitionResult(
            alternatives=[speech.SpeechRecognitionAlternative(transcript=text, confidence=0.9)],
            is_final=is_final,
        )
        for text, is_final in segments
    ])


class FakeSpeechClient:
    """Consumes every request, then replays canned responses or raises."""

    def __init__(self, responses=(), error=None):
        self.responses = list(responses)
        self.error = error
        self.audio = []
        self.config = None

    def streaming_recognize(self, config, requests):
        self.config = config
        for request in requests:
            self.audio.append(request.audio_content)
        if self.error is not None:
            raise self.error
        return iter(self.responses)


def run_stream(client, audio=(b"\x01\x00" * 160,)):
    """Start a stream, feed audio, stop it, and collect what it reported."""
    async def scenario():
        stream = GoogleStreamingRecognition(client, language="en-GB", sample_rate=16000)
        results, errors = [], []
        ended = asyncio.Event()
        stream.on_result = results.append
        stream.on_error = errors.append
        stream.on_end = ended.set

        stream.start()
        for chunk in audio:
            stream.feed(chunk)
        stream.stop()
        await asyncio.wait_for(ended.wait(), timeout=5)
        return results, errors

    return asyncio.run(scenario())


@pytest.mark.unit
class TestGoogleStreamingRecognition:
    """Test cases for GoogleStreamingRecognition."""

    def test_streaming_config(self):
        stream = GoogleStreamingRecognition(Mock(), language="es-ES", sample_rate=48000,
                                            enable_automatic_punctuation=False)

        config = stream.streaming_config
        assert config.interim_results is True
        assert config.single_utterance is False
        assert config.config.language_code == "es-ES"
        assert config.config.sample_rate_hertz == 48000
        assert config.config.enable_automatic_punctuation is False
        assert config.config.encoding == speech.RecognitionConfig.AudioEncoding.LINEAR16

    def test_results_marshalled_to_loop(self):
        client = FakeSpeechClient(responses=[
            response(("hello", False)),
            response(("hello world", True)),
        ])

        results, errors = run_stream(client)

        assert client.audio == [b"\x01\x00" * 160]
        assert [event.results[0].transcript for event in results] == ["hello", "hello world"]
        assert [event.results[0].is_final for event in results] == [False, True]
        assert results[1].result_index == 0
        assert errors == []

    def test_empty_responses_skipped(self):
        client = FakeSpeechClient(responses=[speech.StreamingRecognizeResponse(), response(("hi", True))])

        results, errors = run_stream(client)

        assert len(results) == 1

    def test_no_results_reports_no_speech(self):
        results, errors = run_stream(FakeSpeechClient())

        assert results == []
        assert [e.error for e in errors] == ["no-speech"]

    @pytest.mark.parametrize("exception, code", [
        (gax_exceptions.ServiceUnavailable("down"), "network"),
        (gax_exceptions.DeadlineExceeded("slow"), "network"),
        (gax_exceptions.PermissionDenied("nope"), "not-allowed"),
        (gax_exceptions.Unauthenticated("who"), "not-allowed"),
        (gax_exceptions.InvalidArgument("bad"), "service-error"),
    ])
    def test_api_errors_mapped(self, exception, code):
        results, errors = run_stream(FakeSpeechClient(error=exception))

        assert [e.error for e in errors] == [code]

    def test_stream_limit_after_results_is_clean_end(self):
        """Hitting the service's stream duration limit is a normal end."""
        class LimitedClient(FakeSpeechClient):
            def streaming_recognize(self, config, requests):
                super().streaming_recognize(config, requests)
                yield response(("done", True))
                raise gax_exceptions.OutOfRange("limit")

        results, errors = run_stream(LimitedClient())

        assert len(results) == 1
        assert errors == []

    def test_feed_after_stop_ignored(self):
        stream = GoogleStreamingRecognition(Mock())
        stream.stop()
        stream.feed(b"\x00\x00")
        stream.stop()

        assert stream._audio.qsize() == 1

    def test_start_twice_rejected(self):
        async def scenario():
            stream = GoogleStreamingRecognition(FakeSpeechClient())
            ended = asyncio.Event()
            stream.on_end = ended.set
            stream.start()
            with pytest.raises(RuntimeError):
                stream.start()
            stream.stop()
            await asyncio.wait_for(ended.wait(), timeout=5)

        asyncio.run(scenario())


@pytest.mark.unit
class TestProbeRecognition:
    """Test cases for probe_recognition."""

    def test_disabled_in_config(self):
        config = StudioConfig()
        config.set('transcription.enabled', False)

        capability = probe_recognition(config)

        assert not capability.available
        assert "disabled" in capability.reason

    def test_missing_credentials_file(self, temp_data_dir):
        config = StudioConfig()
        config.set('google_cloud.credentials_path', f"{temp_data_dir}/missing.json")

        assert not probe_recognition(config).available

    def test_no_default_credentials(self):
        with patch("google.auth.default", side_effect=DefaultCredentialsError("none")):
            capability = probe_recognition(StudioConfig())

        assert not capability.available
        assert "credentials" in capability.reason

    def test_available_with_default_credentials(self):
        with patch("google.auth.default", return_value=(Mock(), "project")), \
                patch("creatorstudio.transcription.capability.speech.SpeechClient") as client_class:
            capability = probe_recognition(StudioConfig())

        assert capability.available
        stream = capability.create_stream("fr-FR")
        assert isinstance(stream, GoogleStreamingRecognition)
        assert stream.client is client_class.return_value
        assert stream.language == "fr-FR"
        assert stream.sample_rate == 16000

    def test_unavailable_capability_cannot_create_streams(self):
        with pytest.raises(RuntimeError):
            RecognitionCapability.unavailable("nothing").create_stream("en-US")
