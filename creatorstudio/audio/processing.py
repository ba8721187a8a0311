"""Fixed voice-capture processing applied to every captured frame."""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
from scipy import signal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioConstraints:
    """Capture constraints for spoken-voice recording."""
    echo_cancellation: bool = True
    noise_suppression: bool = True
    auto_gain_control: bool = True


# Not user-tunable: the product only captures speech.
VOICE_CONSTRAINTS = AudioConstraints()


class VoiceProcessor:
    """Applies the voice constraints to 16-bit interleaved PCM frames.

    Noise suppression is a high-pass filter that removes rumble below the
    speech band. Auto gain control steers the signal RMS toward a target
    level with a bounded, slowly moving gain. Echo cancellation needs the
    far-end playback signal, which a capture-only pipeline does not have, so
    it is left to the host audio stack.
    """

    HIGHPASS_CUTOFF_HZ = 80.0
    TARGET_RMS = 0.1
    MAX_GAIN = 8.0
    MIN_GAIN = 0.25
    GAIN_SMOOTHING = 0.9
    SILENCE_RMS = 1e-4

    def __init__(self, sample_rate: int, channels: int = 1,
                 constraints: AudioConstraints = VOICE_CONSTRAINTS):
        self.sample_rate = sample_rate
        self.channels = channels
        self.constraints = constraints
        self.gain = 1.0

        self._sos = signal.butter(2, self.HIGHPASS_CUTOFF_HZ, btype="highpass",
                                  fs=sample_rate, output="sos")
        self._zi: Optional[np.ndarray] = None

        if constraints.echo_cancellation:
            logger.debug("Echo cancellation requested; delegated to the host audio stack")

    def process(self, frames: bytes) -> bytes:
        """Process one buffer of int16 PCM and return int16 PCM of the same length."""
        if not frames:
            return frames

        samples = np.frombuffer(frames, dtype=np.int16).astype(np.float64) / 32768.0
        samples = samples.reshape(-1, self.channels)

        if self.constraints.noise_suppression:
            samples = self._highpass(samples)

        if self.constraints.auto_gain_control:
            samples = self._apply_gain(samples)

        samples = np.clip(samples, -1.0, 32767.0 / 32768.0)
        return (samples * 32768.0).astype(np.int16).tobytes()

    def _highpass(self, samples: np.ndarray) -> np.ndarray:
        if self._zi is None:
            # Start the filter settled on the first sample to avoid a click
            zi = signal.sosfilt_zi(self._sos)
            self._zi = zi[:, :, np.newaxis] * samples[0][np.newaxis, np.newaxis, :]
        filtered, self._zi = signal.sosfilt(self._sos, samples, axis=0, zi=self._zi)
        return filtered

    def _apply_gain(self, samples: np.ndarray) -> np.ndarray:
        rms = float(np.sqrt(np.mean(samples ** 2)))
        if rms > self.SILENCE_RMS:
            wanted = min(max(self.TARGET_RMS / rms, self.MIN_GAIN), self.MAX_GAIN)
            self.gain = self.GAIN_SMOOTHING * self.gain + (1.0 - self.GAIN_SMOOTHING) * wanted
        return samples * self.gain
