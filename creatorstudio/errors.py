"""Exception taxonomy for the capture core."""


class CreatorStudioError(Exception):
    """Base class for all creatorstudio errors."""


class CaptureError(CreatorStudioError):
    """The capture device could not be acquired."""


class PermissionDenied(CaptureError):
    """The host refused access to the microphone."""


class DeviceUnavailable(CaptureError):
    """No usable input device is present."""


class RecognitionError(CreatorStudioError):
    """Base class for speech recognition problems."""

    def __init__(self, error: str, message: str = ""):
        super().__init__(f"{error}: {message}" if message else error)
        self.error = error
        self.message = message


class RecognitionTransient(RecognitionError):
    """No speech or a network blip. Swallowed, the stream restarts itself."""


class RecognitionFatal(RecognitionError):
    """Any other recognition error. Reported as a warning, recording continues."""


class RecognitionUnavailable(RecognitionError):
    """No speech recognizer is available on this platform."""


class CheckpointWriteFailure(CreatorStudioError):
    """A resilience store write or delete failed."""


class InvalidState(CreatorStudioError):
    """An operation was invoked in a lifecycle state that does not allow it."""
